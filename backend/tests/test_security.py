import uuid

from backend.app.security import (
    CallerIdentity,
    caller_may_administer,
    create_access_token,
    generate_totp_code,
    resolve_caller,
    sign_claims,
)


def test_admin_login_requires_otp(security_settings, client):
    response = client.post(
        "/auth/token",
        json={
            "username": security_settings["username"],
            "password": security_settings["password"],
        },
    )
    assert response.status_code == 401

    invalid = client.post(
        "/auth/token",
        json={
            "username": security_settings["username"],
            "password": security_settings["password"],
            "otp_code": "000000",
        },
    )
    assert invalid.status_code == 401

    valid_code = generate_totp_code(security_settings["otp_secret"])
    response = client.post(
        "/auth/token",
        json={
            "username": security_settings["username"],
            "password": security_settings["password"],
            "otp_code": valid_code,
        },
    )
    assert response.status_code == 200
    assert "access_token" in response.json()


def test_admin_login_rejects_wrong_password(security_settings, client):
    response = client.post(
        "/auth/token",
        json={
            "username": security_settings["username"],
            "password": "wrong-password",
            "otp_code": generate_totp_code(security_settings["otp_secret"]),
        },
    )
    assert response.status_code == 401


def test_admin_token_resolves_to_system_administrator(security_settings):
    identity = CallerIdentity(id=security_settings["admin_id"], is_system_admin=True)

    caller = resolve_caller(create_access_token(identity))

    assert caller == identity
    assert caller_may_administer(caller)


def test_member_token_carries_organizations(security_settings):
    org_id = str(uuid.uuid4())
    identity = CallerIdentity(id=str(uuid.uuid4()), organization_ids=(org_id,))

    caller = resolve_caller(create_access_token(identity))

    assert caller is not None
    assert not caller_may_administer(caller)
    assert caller.belongs_to(org_id)
    assert not caller.belongs_to(str(uuid.uuid4()))


def test_untrusted_tokens_resolve_to_no_caller(security_settings):
    token = create_access_token(CallerIdentity(id=str(uuid.uuid4()), is_system_admin=True))
    header, payload, signature = token.split(".")
    tampered = ".".join([header, payload, signature[::-1]])

    expired = sign_claims({"sub": str(uuid.uuid4()), "adm": True, "orgs": [], "exp": 1})
    bad_orgs = sign_claims({"sub": str(uuid.uuid4()), "orgs": "tenant-a", "exp": 4102444800})

    assert resolve_caller(None) is None
    assert resolve_caller("") is None
    assert resolve_caller("garbage") is None
    assert resolve_caller(tampered) is None
    assert resolve_caller(expired) is None
    assert resolve_caller(bad_orgs) is None
    assert not caller_may_administer(None)


def test_health_endpoint_is_public(anonymous_client):
    response = anonymous_client.get("/")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "billing"}
