from scoutwatch.protocol.codec import (
    DecodeResult,
    decode_form,
    decode_payload,
    encode_form,
    encode_payload,
    parse_record,
    split_fields,
    split_forms,
)

__all__ = [
    "DecodeResult",
    "decode_form",
    "decode_payload",
    "encode_form",
    "encode_payload",
    "parse_record",
    "split_fields",
    "split_forms",
]
