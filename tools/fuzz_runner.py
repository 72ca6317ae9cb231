#!/usr/bin/env python3
# tools/fuzz_runner.py
#
# Randomized robustness checks for the aafmt decoder.
#
# Generates three fuzz categories:
#   A) random VALID trees -> AA bytes -> decode_document / aa_to_json
#   B) random MUTATIONS of valid documents (flips, cuts, splices)
#   C) random VALID trees -> skip_value must consume exactly the document
#
# A decode that disagrees with the generated tree, or any exception other
# than AaError, prints a minimal repro payload and exits non-zero.

import os, sys, json, base64, random
from typing import Any, Dict, List

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SAMPLES = os.path.join(ROOT, "tests", "aa_samples.py")

sys.path.insert(0, ROOT)
import aafmt

import importlib.util
spec = importlib.util.spec_from_file_location("aa_samples", SAMPLES)
samples = importlib.util.module_from_spec(spec)
spec.loader.exec_module(samples)

SEED = int(os.environ.get("AA_SEED", "4242"))
ROUNDS = int(os.environ.get("AA_FUZZ_ROUNDS", "5000"))
MAX_DEPTH = int(os.environ.get("AA_FUZZ_DEPTH", "6"))

# Byte runs spliced into documents: grammar bytes, bogus headers, integers
# past the interpreter's str->int digit limit, and nesting past any max_depth.
SPLICES = [b"S", b"N", b"L", b"H", b",", b"9", b"\xff", b"L99,",
           b"N5000," + b"9" * 5000, b"N20,99999999999999999999",
           b"L1," * 3000 + b"S0,"]

random.seed(SEED)

def b64(b: bytes) -> str:
    return base64.b64encode(b).decode("ascii")

def failure(label: str, detail: str, ctx: Dict[str, Any]) -> None:
    print("FAILURE:", label)
    print("DETAIL:", detail)
    print("CTX:", json.dumps(ctx, ensure_ascii=False)[:4000])
    raise SystemExit(1)

# --- generators ---

def rand_text(nmax: int) -> str:
    # Mostly printable ASCII, with grammar bytes and some non-ASCII mixed in.
    alphabet = [chr(c) for c in range(0x20, 0x7F)] + ["\n", "é", "′", "€", "𝄞"]
    n = random.randint(0, nmax)
    return "".join(random.choice(alphabet) for _ in range(n))

def rand_number() -> Any:
    r = random.random()
    if r < 0.5:
        return random.randint(-1000, 1000)
    if r < 0.7:
        return random.randint(-(1 << 70), 1 << 70)
    if r < 0.75:
        # Long, but inside the default str->int limit of 4300 digits.
        return random.randint(-(10 ** 4000), 10 ** 4000)
    return random.uniform(-1e6, 1e6)

def rand_tree() -> Any:
    def gen(depth: int):
        if depth >= MAX_DEPTH or random.random() < 0.35:
            return rand_text(18) if random.random() < 0.6 else rand_number()
        if random.random() < 0.5:
            d = {}
            for _ in range(random.randint(0, 5)):
                d[rand_text(10)] = gen(depth + 1)
            return d
        return [gen(depth + 1) for _ in range(random.randint(0, 5))]
    return gen(0)

def mutate(doc: bytes) -> bytes:
    buf = bytearray(doc)
    for _ in range(random.randint(1, 3)):
        r = random.random()
        if r < 0.4 and buf:
            buf[random.randrange(len(buf))] = random.getrandbits(8)
        elif r < 0.6 and buf:
            del buf[random.randrange(len(buf)):]
        elif r < 0.8:
            at = random.randint(0, len(buf))
            buf[at:at] = random.choice(SPLICES)
        elif buf:
            at = random.randrange(len(buf))
            del buf[at:at + random.randint(1, 4)]
    return bytes(buf)

# --- checks ---

def check_round_trip(i: int) -> None:
    tree = rand_tree()
    doc = samples.encode(tree)
    try:
        got = aafmt.decode_document(doc, allow_trailing=False)
        text = aafmt.aa_to_json(doc)
    except aafmt.AaError as e:
        failure("A decode", f"[{e.code}] {e}", {"round": i, "input_b64": b64(doc)})
    if got != tree:
        failure("A decode", "value differs from generated tree",
                {"round": i, "input_b64": b64(doc)})
    if json.loads(text) != tree:
        failure("A aa_to_json", "JSON differs from generated tree",
                {"round": i, "input_b64": b64(doc)})

def check_mutation(i: int) -> None:
    doc = mutate(samples.encode(rand_tree()))
    try:
        aafmt.decode_document(doc, max_depth=random.randint(1, aafmt.MAX_DEPTH_LIMIT))
    except aafmt.AaError:
        pass
    except Exception as e:  # anything else is a decoder bug
        failure("B mutation", f"{type(e).__name__}: {e}", {"round": i, "input_b64": b64(doc)})

def check_skip(i: int) -> None:
    doc = samples.encode(rand_tree())
    dec = aafmt.Decoder(doc)
    try:
        dec.skip_value()
        dec.finish(allow_trailing=False)
    except aafmt.AaError as e:
        failure("C skip", f"[{e.code}] {e}", {"round": i, "input_b64": b64(doc)})

def main() -> int:
    for i in range(ROUNDS):
        r = random.random()
        if r < 0.40:
            check_round_trip(i)
        elif r < 0.85:
            check_mutation(i)
        else:
            check_skip(i)

    print(f"OK: fuzz rounds={ROUNDS} seed={SEED} (no failures)")
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
