from marketplace.models_sqlalchemy.models import CredentialProvider, ProviderCredential
from marketplace.utils import crypto


def test_encrypt_roundtrip_uses_random_nonce():
    a = crypto.encrypt("APP_USR-123")
    b = crypto.encrypt("APP_USR-123")

    assert a.startswith("ENC:v1:")
    assert a != b
    assert crypto.decrypt(a) == "APP_USR-123"
    assert crypto.decrypt(b) == "APP_USR-123"


def test_plain_and_none_values_pass_through():
    assert crypto.encrypt(None) is None
    assert crypto.decrypt(None) is None
    assert crypto.decrypt("legacy-plain-token") == "legacy-plain-token"
    assert crypto.is_encrypted("legacy-plain-token") is False


def test_tampered_ciphertext_is_returned_unchanged():
    token = crypto.encrypt("secret")
    tampered = token[:-4] + ("AAAA" if not token.endswith("AAAA") else "BBBB")

    assert crypto.decrypt(tampered) == tampered


def test_credentials_are_stored_encrypted(db, make_user):
    user = make_user()
    credential = ProviderCredential(user_id=user.id, provider=CredentialProvider.MERCADO_PAGO)
    credential.access_token = "APP_USR-access"
    credential.refresh_token = "TG-refresh"
    db.add(credential)
    db.commit()

    stored = db.query(ProviderCredential).filter(ProviderCredential.user_id == user.id).one()
    assert stored._access_token.startswith("ENC:v1:")
    assert "APP_USR-access" not in stored._access_token
    assert stored.access_token == "APP_USR-access"
    assert stored.refresh_token == "TG-refresh"
    assert stored.is_connected

    stored.access_token = None
    assert stored._access_token is None
    assert not stored.is_connected
