import io
import os
from datetime import timedelta

from flask_jwt_extended import create_access_token
from pymongo.errors import PyMongoError

from chefstore.store import UserStore
from conftest import STRONG_PASSWORD, bearer, last_verification_token, signup


def stored_user(db, email="ada@example.com"):
    return db.users.find_one({"email": email})


class TestSignup:
    def test_weak_password_is_rejected(self, client, db, sent_emails):
        response = signup(client, password="abc12345")

        assert response.status_code == 400
        assert response.get_json()["success"] is False
        assert stored_user(db) is None
        assert sent_emails == []

    def test_strong_password_creates_unverified_user(self, client, db, sent_emails):
        response = signup(client, email="  Ada@Example.COM ", password=STRONG_PASSWORD)

        assert response.status_code == 201
        body = response.get_json()
        assert body["success"] is True
        assert "token" not in body
        assert "password" not in body

        user = stored_user(db)
        assert user["is_verified"] is False
        assert user["password"] != STRONG_PASSWORD
        assert user["profile_pic"] == "https://via.placeholder.com/150"
        assert user["verification_token"]

        assert len(sent_emails) == 1
        assert sent_emails[0]["to"] == ["ada@example.com"]
        assert "http://shop.test/verify/" in sent_emails[0]["html"]

    def test_password_longer_than_bcrypt_limit_is_rejected(self, client, db, settings):
        response = client.post(
            "/api/users/signup",
            data={
                "firstName": "Ada",
                "lastName": "Lovelace",
                "email": "ada@example.com",
                "password": STRONG_PASSWORD + "a" * 70,
                "profilePic": (io.BytesIO(b"\x89PNG fake"), "me.png"),
            },
            content_type="multipart/form-data",
        )

        assert response.status_code == 400
        assert response.get_json() == {
            "success": False,
            "message": "Password must be at most 72 bytes long.",
        }
        assert stored_user(db) is None
        assert os.listdir(settings.upload_folder) == []

    def test_missing_fields(self, client):
        response = client.post("/api/users/signup", json={"email": "ada@example.com"})

        assert response.status_code == 400
        assert response.get_json() == {"success": False, "message": "All fields are required"}

    def test_malformed_email(self, client):
        response = signup(client, email="not-an-email")

        assert response.status_code == 400

    def test_duplicate_email_conflicts(self, client, sent_emails):
        assert signup(client).status_code == 201

        response = signup(client, email="ADA@example.com")

        assert response.status_code == 409
        assert response.get_json()["message"] == "Email already registered"

    def test_signup_succeeds_when_email_delivery_fails(self, client, db, monkeypatch):
        import resend

        def broken_send(payload):
            raise RuntimeError("smtp down")

        monkeypatch.setattr(resend.Emails, "send", broken_send)

        response = signup(client)

        assert response.status_code == 201
        assert stored_user(db) is not None

    def test_multipart_signup_with_profile_picture(self, client, db, sent_emails):
        response = client.post(
            "/api/users/signup",
            data={
                "firstName": "Ada",
                "lastName": "Lovelace",
                "email": "ada@example.com",
                "password": STRONG_PASSWORD,
                "profilePic": (io.BytesIO(b"\x89PNG fake"), "me.png"),
            },
            content_type="multipart/form-data",
        )

        assert response.status_code == 201
        user = stored_user(db)
        assert user["profile_pic"].startswith("http://localhost/uploads/")
        assert user["profile_pic"].endswith(".png")

        served = client.get(user["profile_pic"].replace("http://localhost", ""))
        assert served.status_code == 200
        assert served.data == b"\x89PNG fake"

    def test_unsupported_image_type(self, client, db, sent_emails):
        response = client.post(
            "/api/users/signup",
            data={
                "firstName": "Ada",
                "lastName": "Lovelace",
                "email": "ada@example.com",
                "password": STRONG_PASSWORD,
                "profilePic": (io.BytesIO(b"GIF89a"), "me.gif"),
            },
            content_type="multipart/form-data",
        )

        assert response.status_code == 400
        assert stored_user(db) is None


    def test_failed_insert_removes_uploaded_picture(self, client, settings, monkeypatch):
        def broken_insert(self, document):
            raise PyMongoError("connection reset")

        monkeypatch.setattr(UserStore, "insert", broken_insert)

        response = client.post(
            "/api/users/signup",
            data={
                "firstName": "Ada",
                "lastName": "Lovelace",
                "email": "ada@example.com",
                "password": STRONG_PASSWORD,
                "profilePic": (io.BytesIO(b"\x89PNG fake"), "me.png"),
            },
            content_type="multipart/form-data",
        )

        assert response.status_code == 500
        assert response.get_json()["success"] is False
        assert os.listdir(settings.upload_folder) == []

    def test_oversized_upload_gets_json_error(self, app, client, db):
        app.config["MAX_CONTENT_LENGTH"] = 1024

        response = client.post(
            "/api/users/signup",
            data={
                "firstName": "Ada",
                "lastName": "Lovelace",
                "email": "ada@example.com",
                "password": STRONG_PASSWORD,
                "profilePic": (io.BytesIO(b"x" * 5 * 1024), "me.png"),
            },
            content_type="multipart/form-data",
        )

        assert response.status_code == 413
        body = response.get_json()
        assert body["success"] is False
        assert body["message"]
        assert stored_user(db) is None


class TestEmailVerification:
    def test_user_stays_unverified_until_token_is_presented(self, client, db, sent_emails):
        signup(client)
        token = last_verification_token(sent_emails)
        assert stored_user(db)["is_verified"] is False

        response = client.get(f"/api/users/verify/{token}")

        assert response.status_code == 200
        assert response.get_json() == {
            "success": True,
            "message": "Email verified successfully",
        }
        user = stored_user(db)
        assert user["is_verified"] is True
        assert user["verification_token"] is None
        assert user["verified_at"] is not None

    def test_verifying_twice_is_idempotent(self, client, db, sent_emails):
        signup(client)
        token = last_verification_token(sent_emails)
        client.get(f"/api/users/verify/{token}")
        first_state = stored_user(db)

        response = client.get(f"/api/users/verify/{token}")

        assert response.status_code == 200
        assert response.get_json()["success"] is True
        assert response.get_json()["message"] == "Already verified"
        assert stored_user(db) == first_state

    def test_tampered_token_fails(self, client, db, sent_emails):
        signup(client)
        token = last_verification_token(sent_emails)
        tampered = token[:-5] + ("A" if token[-5] != "A" else "B") + token[-4:]

        response = client.get(f"/api/users/verify/{tampered}")

        assert response.status_code == 401
        assert response.get_json()["success"] is False
        assert stored_user(db)["is_verified"] is False

    def test_expired_token_fails(self, app, client, db, sent_emails):
        signup(client)
        user_id = str(stored_user(db)["_id"])
        with app.app_context():
            expired = create_access_token(
                identity=user_id,
                additional_claims={"purpose": "email_verification"},
                expires_delta=timedelta(seconds=-5),
            )

        response = client.get(f"/api/users/verify/{expired}")

        assert response.status_code == 401
        assert stored_user(db)["is_verified"] is False

    def test_session_token_is_not_a_verification_token(self, app, client, db, sent_emails):
        signup(client)
        user_id = str(stored_user(db)["_id"])
        with app.app_context():
            session_token = create_access_token(
                identity=user_id, additional_claims={"purpose": "session"}
            )

        response = client.get(f"/api/users/verify/{session_token}")

        assert response.status_code == 401

    def test_token_for_unknown_user(self, app, client):
        with app.app_context():
            token = create_access_token(
                identity="64b7f0c2a1b2c3d4e5f60718",
                additional_claims={"purpose": "email_verification"},
            )

        response = client.get(f"/api/users/verify/{token}")

        assert response.status_code == 404


class TestResendVerification:
    def test_resend_sends_new_link_and_keeps_old_one_valid(self, client, db, sent_emails):
        signup(client)
        first_token = last_verification_token(sent_emails)

        response = client.post(
            "/api/users/resend-verification", json={"email": "ada@example.com"}
        )

        assert response.status_code == 200
        assert len(sent_emails) == 2
        second_token = last_verification_token(sent_emails)
        assert stored_user(db)["verification_token"] == second_token

        assert client.get(f"/api/users/verify/{first_token}").status_code == 200
        assert stored_user(db)["is_verified"] is True

    def test_unknown_email(self, client):
        response = client.post(
            "/api/users/resend-verification", json={"email": "ghost@example.com"}
        )

        assert response.status_code == 404

    def test_missing_email(self, client):
        response = client.post("/api/users/resend-verification", json={})

        assert response.status_code == 400

    def test_already_verified(self, client, register_verified_user):
        register_verified_user()

        response = client.post(
            "/api/users/resend-verification", json={"email": "ada@example.com"}
        )

        assert response.status_code == 409
        assert response.get_json()["message"] == "This account is already verified."


class TestLogin:
    def test_login_before_verification_is_refused(self, client, sent_emails):
        signup(client)

        response = client.post(
            "/api/users/login",
            json={"email": "ada@example.com", "password": STRONG_PASSWORD},
        )

        assert response.status_code == 403
        assert response.get_json() == {
            "success": False,
            "message": "Please verify your email first.",
        }

    def test_unverified_login_fails_even_with_wrong_password(self, client, sent_emails):
        signup(client)

        response = client.post(
            "/api/users/login",
            json={"email": "ada@example.com", "password": "Wrong123!"},
        )

        assert response.status_code == 403

    def test_successful_login_returns_token_and_sanitized_profile(
        self, register_verified_user
    ):
        body = register_verified_user()

        assert body["success"] is True
        assert body["token"]
        assert body["user"]["email"] == "ada@example.com"
        assert body["user"]["firstName"] == "Ada"
        assert body["user"]["isVerified"] is True
        assert "password" not in body["user"]
        assert "verificationToken" not in body["user"]

    def test_wrong_password(self, client, register_verified_user):
        register_verified_user()

        response = client.post(
            "/api/users/login",
            json={"email": "ada@example.com", "password": "Wrong123!"},
        )

        assert response.status_code == 400
        assert response.get_json()["message"] == "Invalid credentials"

    def test_unknown_user(self, client):
        response = client.post(
            "/api/users/login",
            json={"email": "ghost@example.com", "password": STRONG_PASSWORD},
        )

        assert response.status_code == 404

    def test_missing_fields(self, client):
        response = client.post("/api/users/login", json={"email": "ada@example.com"})

        assert response.status_code == 400


class TestProfile:
    def test_profile_requires_token(self, client):
        response = client.get("/api/users/profile")

        assert response.status_code == 401
        assert response.get_json() == {"success": False, "message": "No token provided"}

    def test_profile_returns_sanitized_user(self, client, user_token):
        response = client.get("/api/users/profile", headers=bearer(user_token))

        assert response.status_code == 200
        user = response.get_json()["user"]
        assert user["email"] == "ada@example.com"
        assert "password" not in user

    def test_profile_of_deleted_user(self, client, db, user_token):
        db.users.delete_many({})

        response = client.get("/api/users/profile", headers=bearer(user_token))

        assert response.status_code == 404

    def test_update_profile_picture_replaces_previous_upload(
        self, client, db, settings, user_token
    ):
        def upload(name, content):
            return client.put(
                "/api/users/update-profile-pic",
                data={"profilePic": (io.BytesIO(content), name)},
                content_type="multipart/form-data",
                headers=bearer(user_token),
            )

        first = upload("one.png", b"first")
        assert first.status_code == 200
        first_file = stored_user(db)["profile_pic_filename"]
        assert os.path.exists(os.path.join(settings.upload_folder, first_file))

        second = upload("two.jpg", b"second")

        assert second.status_code == 200
        body = second.get_json()
        assert body["user"]["profilePic"].endswith(".jpg")
        assert not os.path.exists(os.path.join(settings.upload_folder, first_file))

    def test_update_profile_picture_without_file(self, client, user_token):
        response = client.put(
            "/api/users/update-profile-pic",
            data={},
            content_type="multipart/form-data",
            headers=bearer(user_token),
        )

        assert response.status_code == 400
        assert response.get_json()["message"] == "No file uploaded"

    def test_failed_update_removes_new_upload(
        self, client, db, settings, user_token, monkeypatch
    ):
        def broken_update(self, identifier, changes):
            raise PyMongoError("primary stepped down")

        monkeypatch.setattr(UserStore, "update", broken_update)

        response = client.put(
            "/api/users/update-profile-pic",
            data={"profilePic": (io.BytesIO(b"new"), "new.png")},
            content_type="multipart/form-data",
            headers=bearer(user_token),
        )

        assert response.status_code == 500
        assert response.get_json() == {"success": False, "message": "Internal server error"}
        assert os.listdir(settings.upload_folder) == []
