from base64 import b64encode

from requests.auth import AuthBase


class HTTPSTWAuth(AuthBase):
    """
    mServer does not look at the standard Authorization header, it
    wants Basic credentials in STW-Authorization.
    """

    def __init__(self, username: str, password: str) -> None:
        self.username = username or ""
        self.password = password or ""

    def __eq__(self, other: object) -> bool:
        return self.username == getattr(
            other, "username", None
        ) and self.password == getattr(other, "password", None)

    def __ne__(self, other: object) -> bool:
        return not self == other

    @property
    def header_value(self) -> str:
        credentials = ("%s:%s" % (self.username, self.password)).encode("utf-8")
        return "Basic " + b64encode(credentials).decode("ascii")

    def __call__(self, r):
        r.headers["STW-Authorization"] = self.header_value
        return r
