"""
Tests del módulo de autenticación y administración de cuentas

Cubren:
- Registro, login y contexto de empresa
- Restablecimiento de contraseña (usuario y administrador)
- Listado paginado de usuarios y edición de perfiles
- Mantenimiento: aprobación del admin y enlace de perfiles por email
"""
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from app.common.errors import BackendError
from app.modules.audit.models import AuditLog
from app.modules.company.models import Company
from app.modules.auth import service as auth_service_module
from app.modules.auth.maintenance import approve_admin_account, reconcile_auth_users
from app.modules.auth.models import (
    User, Profile, ProfileRole, ProfileStatus, PasswordResetToken, UserInvitation, InvitationStatus
)
from app.modules.auth.utils import hash_password, verify_password
from conftest import TEST_PASSWORD, make_user, auth_headers_for


# ===== REGISTRO Y LOGIN =====

class TestRegistrationAndLogin:

    def test_register_creates_pending_profile(self, client, db_session: Session):
        response = client.post("/auth/register", json={
            "email": "Nurse@MedPlus.app",
            "password": "Clinic2024",
            "full_name": "Grace Achieng"
        })
        assert response.status_code == 201
        body = response.json()
        assert body["email"] == "nurse@medplus.app"

        profile = db_session.query(Profile).filter(Profile.email == "nurse@medplus.app").one()
        assert profile.status == ProfileStatus.PENDING
        assert profile.role == ProfileRole.USER

    def test_register_rejects_weak_password(self, client):
        response = client.post("/auth/register", json={
            "email": "weak@medplus.app",
            "password": "abc",
            "full_name": "Weak Password"
        })
        assert response.status_code == 422

    def test_register_duplicate_email(self, client, sample_user):
        response = client.post("/auth/register", json={
            "email": "OWNER@medplus.app",
            "password": "Clinic2024",
            "full_name": "Duplicate"
        })
        assert response.status_code == 400

    def test_login_success(self, client, sample_user):
        response = client.post("/auth/login", json={"email": "owner@medplus.app", "password": TEST_PASSWORD})
        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["access_token"]

    def test_login_wrong_password(self, client, sample_user):
        response = client.post("/auth/login", json={"email": "owner@medplus.app", "password": "Wrong1234"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"

    def test_context_requires_matching_company(self, client, sample_user, sample_company):
        headers = auth_headers_for(sample_user, sample_company)
        response = client.get("/auth/context", headers=headers)
        assert response.status_code == 200
        assert response.json()["role"] == "admin"

        headers["X-Company-ID"] = str(uuid4())
        response = client.get("/customers", headers=headers)
        assert response.status_code == 403

    def test_pending_profile_is_blocked(self, client, db_session, sample_company):
        user = make_user(db_session, sample_company, "pending@medplus.app",
                         role=ProfileRole.USER, status=ProfileStatus.PENDING)
        response = client.get("/customers", headers=auth_headers_for(user, sample_company))
        assert response.status_code == 403
        assert response.json()["detail"] == "Account pending approval"

    def test_missing_company_header(self, client, auth_headers):
        headers = {"Authorization": auth_headers["Authorization"]}
        response = client.get("/customers", headers=headers)
        assert response.status_code == 400


# ===== RESTABLECIMIENTO DE CONTRASEÑA =====

class TestPasswordReset:

    def test_request_reset_queues_email(self, client, db_session, sample_user, sent_emails):
        response = client.post("/auth/request-password-reset", json={"email": "owner@medplus.app"})
        assert response.status_code == 200
        assert db_session.query(PasswordResetToken).filter_by(user_id=sample_user.id).count() == 1
        assert sent_emails[0][0] == "password_reset"

    def test_request_reset_unknown_email_is_silent(self, client, sent_emails):
        response = client.post("/auth/request-password-reset", json={"email": "ghost@medplus.app"})
        assert response.status_code == 200
        assert sent_emails == []

    def test_reset_password_with_token(self, client, db_session, sample_user):
        db_session.add(PasswordResetToken(
            user_id=sample_user.id,
            token="reset-token-1",
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1)
        ))
        db_session.commit()

        response = client.post("/auth/reset-password", json={"token": "reset-token-1", "new_password": "NewPass2024"})
        assert response.status_code == 200

        db_session.expire_all()
        user = db_session.get(User, sample_user.id)
        assert verify_password("NewPass2024", user.password)

    def test_reset_password_invalid_token(self, client, sample_user):
        response = client.post("/auth/reset-password", json={"token": "nope", "new_password": "NewPass2024"})
        assert response.status_code == 400


# ===== RESTABLECIMIENTO POR ADMINISTRADOR =====

class TestAdminPasswordReset:

    @pytest.fixture
    def target_user(self, db_session, sample_company):
        return make_user(db_session, sample_company, "staff@medplus.app", role=ProfileRole.USER)

    def _payload(self, sample_user, target_user):
        return {
            "email": target_user.email,
            "user_id": str(target_user.profile.id),
            "admin_id": str(sample_user.profile.id)
        }

    def test_requires_authentication(self, client, sample_user, target_user, sent_emails):
        response = client.post("/admin/reset-password", json=self._payload(sample_user, target_user))
        assert response.status_code in (401, 403)
        assert sent_emails == []

    def test_missing_fields(self, client, auth_headers):
        response = client.post("/admin/reset-password", json={"email": "staff@medplus.app"}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Missing required fields: email, user_id, admin_id"}

    def test_admin_id_must_be_the_caller(self, client, db_session, sample_company, sample_user, target_user, sent_emails):
        other_admin = make_user(db_session, sample_company, "manager@medplus.app")
        response = client.post(
            "/admin/reset-password",
            json=self._payload(sample_user, target_user),
            headers=auth_headers_for(other_admin, sample_company)
        )
        assert response.status_code == 403
        assert response.json()["error"] == "admin_id does not match the authenticated user"
        assert db_session.query(AuditLog).count() == 0
        assert sent_emails == []

    def test_non_admin_is_forbidden(self, client, sample_company, sample_user, target_user):
        payload = self._payload(sample_user, target_user)
        payload["admin_id"] = str(target_user.profile.id)
        response = client.post("/admin/reset-password", json=payload,
                               headers=auth_headers_for(target_user, sample_company))
        assert response.status_code == 403
        assert response.json() == {"success": False, "error": "Only administrators can reset passwords"}

    def test_unknown_target_profile(self, client, auth_headers, sample_user, target_user):
        payload = self._payload(sample_user, target_user)
        payload["user_id"] = str(uuid4())
        response = client.post("/admin/reset-password", json=payload, headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "User profile not found"

    def test_target_in_another_company(self, client, db_session, auth_headers, sample_user, sent_emails):
        other_company = Company(name="Kisumu Pharmacy")
        db_session.add(other_company)
        db_session.commit()
        outsider = make_user(db_session, other_company, "pharmacist@kisumu.app", role=ProfileRole.USER)

        response = client.post("/admin/reset-password", json=self._payload(sample_user, outsider), headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "User profile not found"
        assert sent_emails == []

    def test_email_without_account(self, client, auth_headers, sample_user, target_user):
        payload = self._payload(sample_user, target_user)
        payload["email"] = "nobody@medplus.app"
        response = client.post("/admin/reset-password", json=payload, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "No account exists for this email"

    def test_email_of_another_account(self, client, auth_headers, sample_user, target_user):
        payload = self._payload(sample_user, target_user)
        payload["email"] = sample_user.email
        response = client.post("/admin/reset-password", json=payload, headers=auth_headers)
        assert response.status_code == 400

    def test_success_records_audit_and_queues_email(self, client, db_session, auth_headers, sample_user, target_user,
                                                     sent_emails):
        response = client.post("/admin/reset-password", json=self._payload(sample_user, target_user),
                               headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["success"] is True

        audit = db_session.query(AuditLog).filter_by(action="admin_password_reset").one()
        assert audit.actor_id == sample_user.profile.id
        assert audit.entity_id == target_user.profile.id
        assert db_session.query(PasswordResetToken).filter_by(user_id=target_user.id).count() == 1

        name, _, kwargs = sent_emails[0]
        assert name == "password_reset"
        assert kwargs["initiated_by_admin"] is True

    def test_audit_failure_rolls_back_token(self, client, db_session, auth_headers, sample_user, target_user,
                                            sent_emails, monkeypatch):
        def failing_audit(*args, **kwargs):
            raise RuntimeError("audit table unavailable")

        monkeypatch.setattr(auth_service_module, "record_audit_event", failing_audit)
        response = client.post("/admin/reset-password", json=self._payload(sample_user, target_user),
                               headers=auth_headers)

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to record password reset"
        assert db_session.query(PasswordResetToken).count() == 0
        assert sent_emails == []

    def test_email_queue_failure(self, client, auth_headers, sample_user, target_user, monkeypatch):
        def broken_delay(*args, **kwargs):
            raise ConnectionError("broker down")

        monkeypatch.setattr(auth_service_module.send_password_reset_email_task, "delay", broken_delay)
        response = client.post("/admin/reset-password", json=self._payload(sample_user, target_user),
                               headers=auth_headers)
        assert response.status_code == 500
        assert response.json()["error"] == "Failed to send password reset email"

    @pytest.mark.parametrize("method", ["get", "put", "delete"])
    def test_other_methods_not_allowed(self, client, method):
        response = getattr(client, method)("/admin/reset-password")
        assert response.status_code == 405
        assert response.json() == {"success": False, "error": "Method not allowed"}


# ===== USUARIOS Y PERFILES =====

class TestUserAdministration:

    def test_list_users_paginated(self, client, db_session, sample_company, auth_headers):
        for i in range(3):
            make_user(db_session, sample_company, f"user{i}@medplus.app", role=ProfileRole.USER)

        response = client.get("/admin/users?page=1&per_page=2", headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 4
        assert len(body["users"]) == 2

    def test_list_users_requires_admin(self, client, db_session, sample_company):
        accountant = make_user(db_session, sample_company, "acc@medplus.app", role=ProfileRole.ACCOUNTANT)
        response = client.get("/admin/users", headers=auth_headers_for(accountant, sample_company))
        assert response.status_code == 403

    def test_update_profile_role(self, client, db_session, sample_company, auth_headers):
        staff = make_user(db_session, sample_company, "clerk@medplus.app", role=ProfileRole.USER)
        response = client.patch(
            f"/admin/profiles/{staff.profile.id}",
            json={"role": "stock_manager", "department": "Stores"},
            headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["role"] == "stock_manager"
        assert db_session.query(AuditLog).filter_by(action="profile_updated").count() == 1


# ===== MANTENIMIENTO =====

class TestMaintenance:

    def test_approve_admin_account(self, db_session, sample_company):
        make_user(db_session, sample_company, "admin@medplus.app", status=ProfileStatus.PENDING)
        db_session.add(UserInvitation(
            company_id=sample_company.id,
            email="admin@medplus.app",
            role=ProfileRole.ADMIN,
            status=InvitationStatus.PENDING
        ))
        db_session.commit()

        result = approve_admin_account(db_session, "admin@medplus.app")

        assert result.previous_status == "pending"
        assert len(result.invitations_approved) == 1
        profile = db_session.query(Profile).filter_by(email="admin@medplus.app").one()
        assert profile.status == ProfileStatus.ACTIVE
        assert db_session.query(UserInvitation).one().is_approved is True

    def test_approve_missing_admin_raises(self, db_session):
        with pytest.raises(BackendError, match="profile not found"):
            approve_admin_account(db_session, "missing@medplus.app")

    def _unlinked_profile(self, db_session, email):
        user = User(email=email, password=hash_password(TEST_PASSWORD))
        db_session.add(user)
        db_session.add(Profile(email=email.upper(), role=ProfileRole.USER, status=ProfileStatus.ACTIVE))
        db_session.commit()
        return user

    def test_reconcile_links_profiles_by_email(self, db_session, sample_user):
        user = self._unlinked_profile(db_session, "lab@medplus.app")
        db_session.add(User(email="orphan@medplus.app", password=hash_password(TEST_PASSWORD)))
        db_session.commit()

        summary = reconcile_auth_users(db_session, page_size=2, report=lambda _: None)

        assert summary.scanned == 3
        assert summary.matched == 2
        assert summary.already_linked == 1
        assert summary.updated == 1
        assert summary.unmatched == 1
        profile = db_session.query(Profile).filter(Profile.email == "LAB@MEDPLUS.APP").one()
        assert profile.user_id == user.id

    def test_reconcile_dry_run_does_not_write(self, db_session):
        self._unlinked_profile(db_session, "dry@medplus.app")

        summary = reconcile_auth_users(db_session, dry_run=True, report=lambda _: None)

        assert summary.updated == 0
        assert len(summary.planned_links) == 1
        assert db_session.query(Profile).one().user_id is None
