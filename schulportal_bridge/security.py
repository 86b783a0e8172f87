import base64
import binascii
import hashlib
import os
import re
import uuid
from dataclasses import dataclass
from typing import Tuple

from cryptography.hazmat.primitives import padding as sym_padding
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.serialization import load_pem_public_key

from .exceptions import ProtocolFailure

# CryptoJS 口令模式的输出：base64("Salted__" + 8 字节 salt + 密文)
OPENSSL_MAGIC = b"Salted__"
AES_PASSWORD = re.compile(r"^[A-Za-z0-9/+=]{88}$")


def _evp_bytes_to_key(passphrase: bytes, salt: bytes, key_len: int = 32, iv_len: int = 16) -> Tuple[bytes, bytes]:
    """OpenSSL EVP_BytesToKey（MD5，1 轮），与 CryptoJS 的口令派生一致"""
    derived = b""
    block = b""
    while len(derived) < key_len + iv_len:
        block = hashlib.md5(block + passphrase + salt).digest()
        derived += block
    return derived[:key_len], derived[key_len:key_len + iv_len]


def aes_encrypt(plaintext: str, passphrase: str) -> str:
    """等价于 CryptoJS.AES.encrypt(plaintext, passphrase).toString()"""
    salt = os.urandom(8)
    key, iv = _evp_bytes_to_key(passphrase.encode(), salt)
    padder = sym_padding.PKCS7(128).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return base64.b64encode(OPENSSL_MAGIC + salt + ciphertext).decode()


def aes_decrypt(ciphertext: str, passphrase: str) -> bytes:
    """
    解密 CryptoJS 口令格式的密文，返回明文字节。
    格式或填充不对时抛 ValueError。
    """
    try:
        raw = base64.b64decode(ciphertext, validate=True)
    except binascii.Error as e:
        raise ValueError(f"ciphertext is not base64: {e}") from e
    if not raw.startswith(OPENSSL_MAGIC) or len(raw) < 32 or (len(raw) - 16) % 16:
        raise ValueError("ciphertext is not in the salted OpenSSL format")
    salt, body = raw[8:16], raw[16:]
    key, iv = _evp_bytes_to_key(passphrase.encode(), salt)
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(body) + decryptor.finalize()
    unpadder = sym_padding.PKCS7(128).unpadder()
    return unpadder.update(padded) + unpadder.finalize()


def rsa_encrypt_b64(message: str, public_key_pem: str) -> str:
    """用门户固定公钥做 RSA PKCS#1 v1.5 加密，返回 base64"""
    public_key = load_pem_public_key(public_key_pem.encode())
    encrypted = public_key.encrypt(message.encode("utf-8"), padding.PKCS1v15())
    return base64.b64encode(encrypted).decode()


@dataclass(frozen=True)
class LegacyHandshake:
    """
    旧版（SPH1）登录的 RSA/AES 握手。

    key 是随机生成的对称口令，先用 RSA 公钥包起来交给服务器，
    服务器用它加密 challenge 返回；解出来必须和 key 完全一致，
    之后凭证同样用 key 加密提交。
    """

    key: str
    public_key_pem: str

    @classmethod
    def create(cls, public_key_pem: str) -> "LegacyHandshake":
        key = aes_encrypt(str(uuid.uuid4()), str(uuid.uuid4()))
        if not AES_PASSWORD.match(key):
            raise ProtocolFailure()
        return cls(key=key, public_key_pem=public_key_pem)

    def encrypted_key(self) -> str:
        return rsa_encrypt_b64(self.key, self.public_key_pem)

    def verify_challenge(self, challenge: str) -> None:
        """challenge 解不开或内容不等于 key 时直接失败，绝不继续提交凭证"""
        try:
            decrypted = aes_decrypt(challenge, self.key)
        except ValueError as e:
            raise ProtocolFailure("Keys do not match") from e
        if decrypted.decode("utf-8", errors="replace") != self.key:
            raise ProtocolFailure("Keys do not match")

    def encrypt(self, payload: str) -> str:
        return aes_encrypt(payload, self.key)
