from importlib.metadata import PackageNotFoundError, version

DEFAULT_VERSION = '1.0.0'


def version_string():
    try:
        return version("luksctl")
    except PackageNotFoundError:
        return DEFAULT_VERSION
