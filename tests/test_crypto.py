"""Tests for dahualight._crypto."""

from dahualight._crypto import compute_login_hash, md5_upper


class TestMd5Upper:
    def test_known_vector(self):
        assert md5_upper("abc") == "900150983CD24FB0D6963F7D28E17F72"

    def test_empty(self):
        assert md5_upper("") == "D41D8CD98F00B204E9800998ECF8427E"


class TestComputeLoginHash:
    def test_known_vector(self):
        answer = compute_login_hash("admin", "Login to ND0123456789", "95132740", "admin123")
        assert answer == "C59642B401E7D11C618E411A1CDD5145"

    def test_two_stage_construction(self):
        password_hash = md5_upper("admin:Login to ND0123456789:admin123")
        assert password_hash == "342603E3937572361A11339C0DC38D57"
        assert compute_login_hash(
            "admin", "Login to ND0123456789", "95132740", "admin123"
        ) == md5_upper(f"admin:95132740:{password_hash}")

    def test_depends_on_random(self):
        a = compute_login_hash("admin", "realm", "1", "pw")
        b = compute_login_hash("admin", "realm", "2", "pw")
        assert a != b
