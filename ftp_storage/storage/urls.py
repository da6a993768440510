"""Public URL construction for stored files."""

from ftp_storage.storage.paths import SEPARATORS


class PublicUrlBuilder:
    """Turns relative object paths into public URLs.

    The public URL space is independent of the FTP root: ``build`` always
    receives the unprefixed object path.
    """

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip("/") + "/"

    def build(self, relative_path: str) -> str:
        return self.base_url + relative_path.lstrip(SEPARATORS)
