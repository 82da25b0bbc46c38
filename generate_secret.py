import argparse
from pathlib import Path

from hcap import crypto
from hcap.identity import IdentityStore

# Quick one-off secret generator for a demo principal.
# - 32 random bytes from the OS CSPRNG, hex-encoded so it survives JSON/env.
# - With --file, the principal is added to (or replaced in) an identities JSON
#   file the server can load with --identities. Stored unencrypted; fine for
#   local testing only.

p = argparse.ArgumentParser(description="Generate a shared secret for an HCAP principal")
p.add_argument("identity", nargs="?", default="admin")
p.add_argument("--file", help="Identities JSON file to update (e.g. ~/.hcap/identities.json)")
p.add_argument("--bytes", type=int, default=32, dest="nbytes")
args = p.parse_args()

# 1) Fresh secret.
secret = crypto.new_secret(args.nbytes)

# 2) Optionally record it for the server.
if args.file:
    path = Path(args.file).expanduser()
    store = IdentityStore.load(path) if path.exists() else IdentityStore(args.identity)
    store.add(args.identity, secret)
    store.save(path)
    print(f"Saved principal {args.identity!r} to {path}")

# 3) Print it so the client side can use it (HCAP_SHARED_SECRET or --secret).
print(f"{args.identity}'s shared secret (hex):")
print(secret)
