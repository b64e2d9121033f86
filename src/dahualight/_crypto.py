"""Internal digest helpers for the camera login handshake.

The firmware mandates MD5 for the challenge answer. It offers no real
protection against an attacker who sees the exchange, but any other hash
is rejected by the device, so it must stay as is.
"""

from __future__ import annotations

from Crypto.Hash import MD5


def md5_upper(text: str) -> str:
    """MD5 of the UTF-8 encoded *text* as uppercase hex."""
    return MD5.new(text.encode("utf-8")).hexdigest().upper()


def compute_login_hash(username: str, realm: str, random: str, password: str) -> str:
    """Answer a ``global.login`` challenge.

    Two stages, both uppercase hex::

        password_hash = MD5("{username}:{realm}:{password}")
        answer = MD5("{username}:{random}:{password_hash}")
    """
    password_hash = md5_upper(f"{username}:{realm}:{password}")
    return md5_upper(f"{username}:{random}:{password_hash}")
