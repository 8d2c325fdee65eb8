from __future__ import annotations


class VideosError(Exception):
    pass


class GatewayNotFoundError(VideosError):
    pass


class GatewayMethodNotFoundError(VideosError):
    pass


class VideoIdExtractError(VideosError):
    pass


class VideoNotFoundError(VideosError):
    pass


class ApiClientCreateError(VideosError):
    pass


class ApiResponseError(VideosError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CollectionParsingError(VideosError):
    pass


class OauthAccountNotFoundError(VideosError):
    pass


class TokenInvalidError(VideosError):
    pass


class TokenNotFoundError(VideosError):
    pass


class TokenSaveError(VideosError):
    pass


class TokenDeleteError(VideosError):
    pass


class OauthClientError(VideosError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class OauthLoginError(VideosError):
    pass


class OauthLogoutError(VideosError):
    pass


class OauthAccessTokenNotFoundError(VideosError):
    pass


class OauthRefreshAccessTokenError(VideosError):
    pass


class OauthSaveAccessTokenError(VideosError):
    pass


class OauthDeleteAccessTokenError(VideosError):
    pass
