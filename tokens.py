from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from config import get_settings
from errors import InvalidToken


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.token_secret, salt="access-token")


def issue_token(user_id: int, email: str) -> str:
    return _serializer().dumps({"uid": user_id, "email": email})


def verify_token(token: str) -> dict[str, object]:
    settings = get_settings()
    try:
        data = _serializer().loads(
            token, max_age=settings.token_max_age_hours * 3600
        )
    except SignatureExpired as exc:
        raise InvalidToken("El token de acceso expiró") from exc
    except BadSignature as exc:
        raise InvalidToken() from exc

    if not isinstance(data, dict) or not isinstance(data.get("uid"), int):
        raise InvalidToken()
    return data
