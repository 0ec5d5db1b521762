import base64
import hashlib
import json

from infrastructure.external.payments.checksum import (
    decode_payload,
    encode_payload,
    generate_paytm_signature,
    hmac_sha256_hex,
    paytm_params_string,
    phonepe_checksum,
    verify_paytm_signature,
    verify_phonepe_checksum,
    verify_razorpay_payment,
    verify_razorpay_webhook,
)


def test_phonepe_checksum_format():
    payload = encode_payload({"merchantId": "M1", "amount": 100})
    expected = hashlib.sha256(f"{payload}/pg/v1/paysalt".encode()).hexdigest() + "###1"
    assert phonepe_checksum(payload, "salt", 1, "/pg/v1/pay") == expected


def test_phonepe_verify_rejects_tampered_payload():
    payload = encode_payload({"code": "PAYMENT_SUCCESS"})
    header = phonepe_checksum(payload, "salt", "1")
    assert verify_phonepe_checksum(payload, header, "salt", "1")
    tampered = encode_payload({"code": "PAYMENT_ERROR"})
    assert not verify_phonepe_checksum(tampered, header, "salt", "1")
    assert not verify_phonepe_checksum(payload, None, "salt", "1")
    assert not verify_phonepe_checksum(payload, "\u00e9abc###1", "salt", "1")


def test_phonepe_payload_is_compact_base64_json():
    encoded = encode_payload({"a": 1, "b": "x"})
    assert base64.b64decode(encoded) == b'{"a":1,"b":"x"}'
    assert decode_payload(encoded) == {"a": 1, "b": "x"}


def test_paytm_params_string_sorts_and_blanks_nulls():
    assert paytm_params_string({"b": "2", "a": "1", "c": None, "d": "null"}) == "1|2||"


def test_paytm_signature_verifies_and_detects_tampering():
    key = "abcdefgh12345678"
    params = {"MID": "MID1", "ORDERID": "TXN_1_1", "STATUS": "TXN_SUCCESS", "TXNAMOUNT": "100.00"}
    checksum = generate_paytm_signature(params, key)
    assert verify_paytm_signature(params, key, checksum)
    assert verify_paytm_signature({**params, "CHECKSUMHASH": checksum}, key, checksum)
    assert not verify_paytm_signature({**params, "TXNAMOUNT": "1.00"}, key, checksum)
    assert not verify_paytm_signature(params, "zyxwvuts87654321", checksum)
    assert not verify_paytm_signature(params, key, "not-base64!")


def test_paytm_signature_over_json_body():
    key = "abcdefgh12345678"
    body = json.dumps({"mid": "MID1", "orderId": "TXN_1_1"})
    assert verify_paytm_signature(body, key, generate_paytm_signature(body, key, salt="AbC1"))


def test_razorpay_signatures():
    body = b'{"event":"payment.captured"}'
    signature = hmac_sha256_hex("whsec", body)
    assert verify_razorpay_webhook(body, signature, "whsec")
    assert not verify_razorpay_webhook(body + b" ", signature, "whsec")
    assert not verify_razorpay_webhook(body, None, "whsec")
    assert not verify_razorpay_webhook(body, "\u00e9" + signature[1:], "whsec")

    checkout_sig = hmac_sha256_hex("key_secret", "order_1|pay_1")
    assert verify_razorpay_payment("order_1", "pay_1", checkout_sig, "key_secret")
    assert not verify_razorpay_payment("order_1", "pay_2", checkout_sig, "key_secret")
    assert not verify_razorpay_payment("order_1", "pay_1", "\u00fc" + checkout_sig, "key_secret")
