from .config import Config


class StaticUserConfig:
    """User id and pro token fixed at startup. Empty strings mean anonymous."""

    def __init__(self, user_id: str = "", token: str = ""):
        self.user_id = user_id or ""
        self.token = token or ""

    @classmethod
    def from_settings(cls, settings: Config) -> "StaticUserConfig":
        user = settings.user
        return cls(str(user.get("id") or ""), str(user.get("token") or ""))

    def get_user_id(self) -> str:
        return self.user_id

    def get_token(self) -> str:
        return self.token
