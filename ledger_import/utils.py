import pathlib


def strip_base_path(
    base: pathlib.Path | pathlib.PurePath,
    filepath: str | pathlib.Path | pathlib.PurePath,
) -> str:
    """Path relative to ``base``, or the path itself when it lives elsewhere"""
    filepath = pathlib.Path(filepath)
    if not filepath.is_relative_to(base):
        return str(filepath)
    return str(filepath.relative_to(base))
