"""Tests for canonical encoding and content identifiers."""

import unittest

from trust_scoring.integrity.content_id import canonical_bytes, compute_cid, verify_cid


class TestContentId(unittest.TestCase):
    """Test case for CID computation."""

    def setUp(self):
        """Set up test fixtures."""
        self.payload = {
            "type": "scores",
            "data": [{"promptId": "p1", "modelId": "m1", "value": 0.5}],
        }

    def test_key_order_does_not_change_cid(self):
        """Test that dictionaries with the same content share a CID."""
        reordered = {
            "data": [{"value": 0.5, "modelId": "m1", "promptId": "p1"}],
            "type": "scores",
        }
        self.assertEqual(compute_cid(self.payload), compute_cid(reordered))

    def test_integral_float_encodes_like_int(self):
        """Test that 1.0 and 1 canonicalize identically."""
        self.assertEqual(canonical_bytes({"value": 1.0}), b'{"value":1}')
        self.assertEqual(compute_cid({"value": 1.0}), compute_cid({"value": 1}))

    def test_canonical_form_is_compact_and_sorted(self):
        """Test the exact canonical byte encoding."""
        self.assertEqual(canonical_bytes({"b": [1, 2], "a": "é"}), '{"a":"é","b":[1,2]}'.encode("utf-8"))

    def test_cid_is_base32_cidv1(self):
        """Test the CID prefix for a raw sha2-256 CIDv1."""
        cid = compute_cid(self.payload)
        self.assertTrue(cid.startswith("bafkrei"))
        self.assertEqual(cid, cid.lower())
        self.assertNotIn("=", cid)

    def test_changed_payload_changes_cid(self):
        """Test that any content change yields a new CID."""
        tampered = {"type": "scores", "data": [{"promptId": "p1", "modelId": "m1", "value": 0.6}]}
        self.assertNotEqual(compute_cid(self.payload), compute_cid(tampered))
        self.assertFalse(verify_cid(tampered, compute_cid(self.payload)))

    def test_verify_cid_accepts_matching_payload(self):
        """Test that a claimed CID verifies against its own payload."""
        self.assertTrue(verify_cid(self.payload, compute_cid(self.payload)))
        self.assertFalse(verify_cid(self.payload, ""))

    def test_bytes_are_hashed_as_is(self):
        """Test that raw bytes bypass canonicalization."""
        self.assertEqual(compute_cid(canonical_bytes(self.payload)), compute_cid(self.payload))
        self.assertNotEqual(compute_cid(b'{"type": "scores"}'), compute_cid({"type": "scores"}))

    def test_non_finite_numbers_are_rejected(self):
        """Test that NaN cannot be content-addressed."""
        with self.assertRaises(ValueError):
            compute_cid({"value": float("nan")})


if __name__ == "__main__":
    unittest.main()
