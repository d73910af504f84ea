from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from hexbytes import HexBytes
from web3.datastructures import AttributeDict

# -----------------------------
# JSON safe serialization
# -----------------------------
def to_json_safe(obj):
    if isinstance(obj, HexBytes):
        return obj.to_0x_hex()
    elif isinstance(obj, bytes):
        return "0x" + obj.hex()
    elif is_dataclass(obj) and not isinstance(obj, type):
        return to_json_safe(asdict(obj))
    elif isinstance(obj, (AttributeDict, dict)):
        return {k: to_json_safe(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [to_json_safe(v) for v in obj]
    elif isinstance(obj, int) and not isinstance(obj, bool) and abs(obj) >= 2**53:
        # uint256 amounts lose precision as JSON numbers
        return str(obj)
    else:
        return obj

# -----------------------------
# create current_utctime
# -----------------------------
def current_utctime():
    """Return the current UTC time string in ISO-8601 format with millisecond precision"""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
