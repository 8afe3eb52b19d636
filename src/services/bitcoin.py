"""
Bitcoin - P2WPKH payment construction and signing.

Builds a version 2 segwit transaction spending the wallet's native segwit
outputs: first-fit UTXO selection, recipient output, change back to the
wallet, BIP143 sighash (SIGHASH_ALL) and low-S DER signatures.
"""

import hashlib
import logging
from typing import Sequence

from bip_utils import Base58ChecksumError, Base58Decoder, Bech32ChecksumError, SegwitBech32Decoder
from coincurve import PrivateKey as Secp256k1PrivateKey

from chains import btc_to_sats, parse_fee_sats
from errors import CryptoFailure, InputValidation
from vault.derivation import BitcoinKeys
from .connection import SignedBlob, SignedConnection, Utxo

logger = logging.getLogger(__name__)

BECH32_HRP = "bc"
P2PKH_VERSION = b"\x00"
P2SH_VERSION = b"\x05"

TX_VERSION = 2
TX_LOCKTIME = 0
TX_SEQUENCE = 0xffffffff
SIGHASH_ALL = 1


# ============================================
# Encoding Helpers
# ============================================

def sha256d(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def varint(n: int) -> bytes:
    """Encode integer as Bitcoin varint"""
    if n < 0xfd:
        return bytes([n])
    elif n <= 0xffff:
        return b'\xfd' + n.to_bytes(2, 'little')
    elif n <= 0xffffffff:
        return b'\xfe' + n.to_bytes(4, 'little')
    return b'\xff' + n.to_bytes(8, 'little')


def _outpoint(utxo: Utxo) -> bytes:
    try:
        txid = bytes.fromhex(utxo.txid)
    except ValueError:
        raise InputValidation(f"Invalid txid {utxo.txid}", "Invalid unspent output") from None
    if len(txid) != 32:
        raise InputValidation(f"Invalid txid {utxo.txid}", "Invalid unspent output")
    return txid[::-1] + utxo.vout.to_bytes(4, 'little')


def output_script(address: str) -> bytes:
    """
    scriptPubKey for a mainnet address.

    Supports bech32/bech32m segwit (bc1...), P2PKH (1...) and P2SH (3...).
    """
    address = (address or "").strip()
    if address.lower().startswith(BECH32_HRP + "1"):
        try:
            version, program = SegwitBech32Decoder.Decode(BECH32_HRP, address)
        except (Bech32ChecksumError, ValueError) as e:
            raise InputValidation(f"Invalid segwit address: {e}", "Invalid Bitcoin address") from e
        op_version = 0x00 if version == 0 else 0x50 + version
        return bytes([op_version, len(program)]) + bytes(program)

    if address[:1] in ("1", "3"):
        try:
            decoded = Base58Decoder.CheckDecode(address)
        except (Base58ChecksumError, ValueError) as e:
            raise InputValidation(f"Invalid base58 address: {e}", "Invalid Bitcoin address") from e
        version, payload = decoded[:1], decoded[1:]
        if len(payload) == 20 and version == P2PKH_VERSION:
            return bytes([0x76, 0xa9, 0x14]) + payload + bytes([0x88, 0xac])
        if len(payload) == 20 and version == P2SH_VERSION:
            return bytes([0xa9, 0x14]) + payload + bytes([0x87])

    raise InputValidation(f"Unsupported address format: {address}", "Invalid Bitcoin address")


def _p2wpkh_program(address: str) -> bytes:
    script = output_script(address)
    if len(script) != 22 or script[:2] != b'\x00\x14':
        raise InputValidation("Wallet address is not P2WPKH", "Invalid Bitcoin address")
    return script[2:]


# ============================================
# UTXO Selection
# ============================================

def select_utxos(utxos: Sequence[Utxo], amount: int, fee: int) -> list[Utxo]:
    """
    Pick UTXOs in the given order until amount + fee is covered.

    Raises:
        InputValidation: If the UTXOs cannot cover amount + fee
    """
    target = amount + fee
    available = sum(u.amount_sats for u in utxos)
    if available < target:
        raise InputValidation(
            f"Insufficient funds: needed {target} satoshis, available {available} satoshis",
            "Insufficient funds",
        )

    selected = []
    total = 0
    for utxo in utxos:
        if total >= target:
            break
        selected.append(utxo)
        total += utxo.amount_sats
    return selected


# ============================================
# Transaction Building
# ============================================

def bip143_sighash(inputs: Sequence[Utxo], outputs: Sequence[tuple[int, bytes]],
                   input_index: int, pubkey_hash: bytes) -> bytes:
    """BIP143 signature hash (double SHA256) for a P2WPKH input with SIGHASH_ALL."""
    hash_prevouts = sha256d(b''.join(_outpoint(u) for u in inputs))
    hash_sequence = sha256d(b''.join(TX_SEQUENCE.to_bytes(4, 'little') for _ in inputs))
    hash_outputs = sha256d(b''.join(
        value.to_bytes(8, 'little') + varint(len(script)) + script for value, script in outputs
    ))
    script_code = bytes([0x76, 0xa9, 0x14]) + pubkey_hash + bytes([0x88, 0xac])

    utxo = inputs[input_index]
    preimage = b''
    preimage += TX_VERSION.to_bytes(4, 'little')
    preimage += hash_prevouts
    preimage += hash_sequence
    preimage += _outpoint(utxo)
    preimage += varint(len(script_code)) + script_code
    preimage += utxo.amount_sats.to_bytes(8, 'little')
    preimage += TX_SEQUENCE.to_bytes(4, 'little')
    preimage += hash_outputs
    preimage += TX_LOCKTIME.to_bytes(4, 'little')
    preimage += SIGHASH_ALL.to_bytes(4, 'little')
    return sha256d(preimage)


def serialize_transaction(inputs: Sequence[Utxo], outputs: Sequence[tuple[int, bytes]],
                          witnesses: Sequence[Sequence[bytes]] = ()) -> bytes:
    """Serialize a transaction; with witnesses it uses the segwit marker/flag."""
    tx = TX_VERSION.to_bytes(4, 'little')
    if witnesses:
        tx += b'\x00\x01'

    tx += varint(len(inputs))
    for utxo in inputs:
        tx += _outpoint(utxo)
        tx += b'\x00'
        tx += TX_SEQUENCE.to_bytes(4, 'little')

    tx += varint(len(outputs))
    for value, script in outputs:
        tx += value.to_bytes(8, 'little')
        tx += varint(len(script)) + script

    for stack in witnesses:
        tx += varint(len(stack))
        for item in stack:
            tx += varint(len(item)) + item

    tx += TX_LOCKTIME.to_bytes(4, 'little')
    return tx


def txid(inputs: Sequence[Utxo], outputs: Sequence[tuple[int, bytes]]) -> str:
    """Transaction id: double SHA256 of the non-witness serialization, reversed."""
    return sha256d(serialize_transaction(inputs, outputs))[::-1].hex()


def build_p2wpkh_payment(keys: BitcoinKeys, recipient: str, amount_sats: int,
                         fee_sats: int, utxos: Sequence[Utxo]) -> SignedBlob:
    """Select inputs, add change and sign every input."""
    if amount_sats <= 0:
        raise InputValidation("Amount must be greater than zero", "Amount must be greater than zero")
    if fee_sats <= 0:
        raise InputValidation("Fee must be greater than zero", "Invalid fee")

    recipient_script = output_script(recipient)
    pubkey_hash = _p2wpkh_program(keys.address)

    selected = select_utxos(utxos, amount_sats, fee_sats)
    total_input = sum(u.amount_sats for u in selected)

    outputs = [(amount_sats, recipient_script)]
    change = total_input - amount_sats - fee_sats
    if change > 0:
        outputs.append((change, bytes([0x00, 0x14]) + pubkey_hash))

    try:
        signer = Secp256k1PrivateKey(bytes(keys.private_key))
    except ValueError as e:
        raise CryptoFailure("Invalid Bitcoin private key") from e

    witnesses = []
    for i in range(len(selected)):
        sighash = bip143_sighash(selected, outputs, i, pubkey_hash)
        signature = signer.sign(sighash, hasher=None)
        witnesses.append([signature + bytes([SIGHASH_ALL]), keys.public_key])

    raw = serialize_transaction(selected, outputs, witnesses)
    logger.debug(f"Built P2WPKH tx with {len(selected)} inputs, {len(outputs)} outputs")
    return SignedBlob(blob=raw.hex(), tx_hash=txid(selected, outputs), fee=str(fee_sats))


def build_bitcoin_payment(intent, keys: BitcoinKeys, connection: SignedConnection) -> SignedBlob:
    """Builder for BitcoinPaymentIntent: fetch UTXOs and sign."""
    amount_sats = btc_to_sats(intent.amount)
    fee_sats = parse_fee_sats(intent.fee)
    utxos = connection.fetch_utxos(keys.address)
    return build_p2wpkh_payment(keys, intent.recipient, amount_sats, fee_sats, utxos)
