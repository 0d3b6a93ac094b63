import secrets
import sys
import time
from pathlib import Path

from src.oauth2.keys import generate_key_pair, write_key_pair


if __name__ == "__main__":
    secret_key = secrets.token_hex()

    key_dir = Path(sys.argv[1] if len(sys.argv) > 1 else "ssh")
    key_dir.mkdir(parents=True, exist_ok=True)
    private_path = key_dir / "id_rsa"
    public_path = key_dir / "id_rsa.pub"

    now = int(time.time())
    write_key_pair(generate_key_pair(), private_path, public_path, comment=f"dpop-{now}")

    print(f'FLASK_SECRET_KEY="{secret_key}"')
    print(f'FLASK_DPOP_PRIVATE_KEY_PATH="{private_path}"')
    print(f'FLASK_DPOP_PUBLIC_KEY_PATH="{public_path}"')
