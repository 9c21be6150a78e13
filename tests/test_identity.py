"""
Test suite for zkwallet_core.identity — provider claim normalization.

Covers:
  - GitHub and Google claim shapes
  - Account equivalence by (provider, subject)
  - Unsupported providers and subject-less claims
  - Claim token decoding
"""

import base64
import json
import unittest

from zkwallet_core.errors import InvalidClaimError, UnsupportedProviderError
from zkwallet_core.identity import (
    Identity,
    Provider,
    decode_claim_token,
    normalize_identity,
    parse_provider,
)


class TestNormalizeGithub(unittest.TestCase):

    def test_numeric_id_becomes_subject(self):
        ident = normalize_identity(
            {"id": 583231, "login": "octocat", "email": "octo@github.com",
             "avatar_url": "https://avatars/1", "name": "The Octocat"},
            "github",
        )
        self.assertEqual(ident.subject, "583231")
        self.assertEqual(ident.login, "octocat")
        self.assertEqual(ident.picture, "https://avatars/1")
        self.assertEqual(ident.provider, Provider.GITHUB)

    def test_sub_takes_precedence_over_id(self):
        ident = normalize_identity({"sub": "abc", "id": 1}, Provider.GITHUB)
        self.assertEqual(ident.subject, "abc")

    def test_missing_email_is_empty(self):
        ident = normalize_identity({"id": 7}, "github")
        self.assertEqual(ident.email, "")


class TestNormalizeGoogle(unittest.TestCase):

    def test_login_from_email_local_part(self):
        ident = normalize_identity(
            {"sub": "1098", "email": "alice@example.com", "picture": "https://p/1"},
            "google",
        )
        self.assertEqual(ident.subject, "1098")
        self.assertEqual(ident.login, "alice")
        self.assertEqual(ident.picture, "https://p/1")

    def test_no_subject_rejected(self):
        with self.assertRaises(InvalidClaimError):
            normalize_identity({"email": "a@b.c"}, "google")


class TestAccountEquivalence(unittest.TestCase):

    def test_same_provider_and_subject(self):
        a = Identity(subject="1", email="old@x.y", provider=Provider.GITHUB)
        b = Identity(subject="1", email="new@x.y", provider=Provider.GITHUB, name="Renamed")
        self.assertTrue(a.same_account(b))

    def test_same_subject_other_provider(self):
        a = Identity(subject="1", email="a@x.y", provider=Provider.GITHUB)
        b = Identity(subject="1", email="a@x.y", provider=Provider.GOOGLE)
        self.assertFalse(a.same_account(b))

    def test_dict_roundtrip(self):
        a = Identity(subject="9", email="e@x.y", provider=Provider.GOOGLE, login="e")
        self.assertEqual(Identity.from_dict(a.to_dict()), a)


class TestProviders(unittest.TestCase):

    def test_parse_known(self):
        self.assertIs(parse_provider("google"), Provider.GOOGLE)

    def test_parse_unknown(self):
        with self.assertRaises(UnsupportedProviderError):
            parse_provider("facebook")

    def test_normalize_unknown(self):
        with self.assertRaises(UnsupportedProviderError):
            normalize_identity({"sub": "1"}, "twitter")


class TestDecodeClaimToken(unittest.TestCase):

    def test_decodes_base64_json(self):
        token = base64.b64encode(json.dumps({"sub": "1", "email": "a@b.c"}).encode()).decode()
        self.assertEqual(decode_claim_token(token)["sub"], "1")

    def test_unpadded_urlsafe(self):
        token = base64.urlsafe_b64encode(b'{"sub":"22"}').decode().rstrip("=")
        self.assertEqual(decode_claim_token(token), {"sub": "22"})

    def test_garbage_rejected(self):
        with self.assertRaises(InvalidClaimError):
            decode_claim_token("!!not-a-token!!")

    def test_non_object_rejected(self):
        token = base64.b64encode(b"[1, 2]").decode()
        with self.assertRaises(InvalidClaimError):
            decode_claim_token(token)
