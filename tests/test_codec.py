import base64
import json

import pytest

from vault_arb.codec import decode_b64_to_json, encode_json_to_b64, to_amount_string


@pytest.mark.parametrize("value", [
    "oracle",
    {"swap_tokens": {"expected_return": "123"}},
    [1, 2.5, None, True],
    {"nested": {"unicode": "ü"}},
])
def test_b64_json_roundtrip(value):
    assert decode_b64_to_json(encode_json_to_b64(value)) == value


def test_encoding_is_compact_json():
    encoded = encode_json_to_b64({"supply": {}})
    assert base64.b64decode(encoded).decode() == '{"supply":{}}'


def test_non_ascii_text_is_encoded_as_utf8():
    encoded = encode_json_to_b64({"permit_name": "café"})
    assert base64.b64decode(encoded) == '{"permit_name":"café"}'.encode("utf-8")


def test_id_tag_encoding_matches_quoted_string():
    assert base64.b64decode(encode_json_to_b64("pair")) == json.dumps("pair").encode()


def test_amount_string_truncates_toward_zero():
    assert to_amount_string(49919.9999) == "49919"
    assert to_amount_string(-1.9) == "-1"
    assert to_amount_string(0.0) == "0"


def test_amount_string_never_uses_exponent():
    assert to_amount_string(1e21) == "1000000000000000000000"
