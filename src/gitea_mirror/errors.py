class MirrorError(Exception):
    """base error of gitea-mirror"""


class ConfigError(MirrorError):
    pass


class GiteaAPIError(MirrorError):
    pass


class CloneError(MirrorError):
    pass


class CloneTimeout(CloneError):
    pass
