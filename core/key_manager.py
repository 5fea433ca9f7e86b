import base64
import getpass
import os
import sys
from pathlib import Path
from typing import Dict, Optional, Tuple

from cryptography.fernet import Fernet
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from solders.keypair import Keypair

from config import JITO_AUTH_KEYPAIR_PATH, KEYPAIR_PATH, KEYS_CACHE_DIR
from utils import get_logger

logger = get_logger("KEYS")


def read_keypair(path: str) -> Keypair:
    """Loads a solana cli keypair file (json array of 64 secret key bytes)."""
    with open(os.path.expanduser(path), 'r') as f:
        raw = f.read()
    try:
        return Keypair.from_json(raw)
    except Exception as e:
        raise ValueError(f"Invalid keypair file {path}: {e}") from e


class KeyManager:
    """
    Keeps the trading key and the jito auth key encrypted on disk.

    Keys are stored as base58 secret keys encrypted with a password derived Fernet key,
    the random salt is prepended to every file. One password covers both keys. A key
    that is not cached yet is taken from its solana cli keypair file when one exists,
    otherwise the user is asked for it.
    """

    SOL_PK_FILE = "sol_pk.txt"
    JITO_PK_FILE = "jito_pk.txt"
    SALT_SIZE = 16

    def __init__(
        self,
        cache_dir: str = KEYS_CACHE_DIR,
        keypair_path: str = KEYPAIR_PATH,
        jito_auth_keypair_path: str = JITO_AUTH_KEYPAIR_PATH,
        use_jito: bool = True,
    ):
        self.cache_path = Path(cache_dir)
        self.key_paths: Dict[str, Path] = {"SOLANA": self.cache_path / self.SOL_PK_FILE}
        self.keypair_files: Dict[str, str] = {"SOLANA": keypair_path}
        if use_jito:
            self.key_paths["JITO_AUTH"] = self.cache_path / self.JITO_PK_FILE
            self.keypair_files["JITO_AUTH"] = jito_auth_keypair_path
        self.keys: Dict[str, Keypair] = {}

        self.cache_path.mkdir(exist_ok=True)

    def _derive_key_from_password(self, password: str, salt: bytes) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=100000,
            backend=default_backend()
        )
        return base64.urlsafe_b64encode(kdf.derive(password.encode()))

    def encrypt(self, data: str, password: str) -> bytes:
        salt = os.urandom(self.SALT_SIZE)
        fernet = Fernet(self._derive_key_from_password(password, salt))
        return salt + fernet.encrypt(data.encode())

    def decrypt(self, encrypted_data: bytes, password: str) -> str:
        try:
            salt = encrypted_data[:self.SALT_SIZE]
            fernet = Fernet(self._derive_key_from_password(password, salt))
            return fernet.decrypt(encrypted_data[self.SALT_SIZE:]).decode()
        except Exception as e:
            raise ValueError("Incorrect password or corrupted data") from e

    @staticmethod
    def _parse_keypair(private_key: str) -> Keypair:
        try:
            return Keypair.from_base58_string(private_key.strip())
        except Exception as e:
            raise ValueError(f"Invalid Solana private key: {e}") from e

    def _file_exists_and_not_empty(self, file_path: Path) -> bool:
        return file_path.exists() and file_path.stat().st_size > 0

    def load_encrypted_key(self, file_path: Path, password: str) -> Keypair:
        with open(file_path, 'rb') as f:
            return self._parse_keypair(self.decrypt(f.read(), password))

    def save_encrypted_key(self, file_path: Path, keypair: Keypair, password: str):
        with open(file_path, 'wb') as f:
            f.write(self.encrypt(str(keypair), password))

    def _prompt_for_password(self, prompt_text: str = "Enter password: ") -> str:
        return getpass.getpass(prompt_text)

    def _prompt_for_private_key(self, key_name: str) -> str:
        print(f"\n{'='*60}")
        print(f"Enter {key_name} private key (base58):")
        print(f"{'='*60}")
        return getpass.getpass(f"{key_name} private key: ")

    def _ask_retry(self) -> bool:
        return input("Try again? (yes/no): ").strip().lower() in ['yes', 'y']

    def _confirm_proceed(self) -> bool:
        while True:
            response = input("\nProceed with these keys? (yes/no): ").strip().lower()
            if response in ['yes', 'y']:
                return True
            elif response in ['no', 'n']:
                return False
            else:
                print("Please enter 'yes' or 'no'")

    def _display_keys(self):
        print("\n" + "="*60)
        print("PUBLIC KEYS:")
        print("="*60)
        for name, keypair in self.keys.items():
            print(f"{name:<10} {keypair.pubkey()}")
        print("="*60)

    def _load_new_key(self, name: str) -> Keypair:
        keypair_file = self.keypair_files[name]
        if keypair_file and os.path.exists(os.path.expanduser(keypair_file)):
            keypair = read_keypair(keypair_file)
            logger.info(f"{name} key loaded from {keypair_file}")
            return keypair

        logger.info(f"{name} key not found")
        while True:
            try:
                return self._parse_keypair(self._prompt_for_private_key(name))
            except ValueError as e:
                logger.error(f"Invalid {name} key: {e}")
                if not self._ask_retry():
                    logger.warning("User chose not to retry. Exiting...")
                    sys.exit(1)

    def _decrypt_existing(self, names) -> str:
        while True:
            password = self._prompt_for_password("Enter decryption password: ")
            try:
                for name in names:
                    self.keys[name] = self.load_encrypted_key(self.key_paths[name], password)
                    logger.info(f"{name} key decrypted successfully")
                return password
            except ValueError as e:
                logger.error(f"Decryption failed: {e}")
                if not self._ask_retry():
                    logger.warning("User chose not to retry. Exiting...")
                    sys.exit(1)

    def initialize_keys(self) -> Tuple[Keypair, Optional[Keypair]]:
        """
        Loads every key, asking for whatever is missing.

        Returns (trading keypair, jito auth keypair or None when jito is not used).
        """
        logger.info("Initializing key management...")

        existing = [name for name, path in self.key_paths.items() if self._file_exists_and_not_empty(path)]
        missing = [name for name in self.key_paths if name not in existing]

        password = None
        if existing:
            logger.info(f"Encrypted keys found: {', '.join(existing)}. Decrypting...")
            password = self._decrypt_existing(existing)

        if missing:
            logger.info(f"Setting up new keys: {', '.join(missing)}")
            for name in missing:
                self.keys[name] = self._load_new_key(name)

            if password is None:
                while True:
                    password = self._prompt_for_password("Enter encryption password: ")
                    if password == self._prompt_for_password("Confirm password: "):
                        break
                    logger.error("Passwords do not match. Try again.")
            else:
                logger.info("Using existing password for new key encryption")

            for name in missing:
                self.save_encrypted_key(self.key_paths[name], self.keys[name], password)
                logger.info(f"{name} key encrypted and saved to {self.key_paths[name]}")

        self._display_keys()
        if not self._confirm_proceed():
            logger.warning("User declined to proceed. Exiting...")
            sys.exit(0)

        logger.info("Keys loaded successfully")
        return self.keys["SOLANA"], self.keys.get("JITO_AUTH")
