import enum
import logging
import dataclasses

from typing import Optional, Tuple

import regex

import cryptography.hazmat.primitives.hashes as c_hashes
import cryptography.hazmat.primitives.asymmetric.ec as c_ec
import cryptography.hazmat.primitives.asymmetric.rsa as c_rsa

import partcert.exc as p_exc

logger = logging.getLogger(__name__)

class TpmAlg(enum.IntEnum):
    '''
    TPM_ALG_ID values for the key types and digests used by certification.
    '''
    RSA = 0x0001
    SHA1 = 0x0004
    SHA256 = 0x000b
    SHA384 = 0x000c
    SHA512 = 0x000d
    NULL = 0x0010
    ECC = 0x0023

KEYTYPES = (TpmAlg.RSA, TpmAlg.ECC)
HASHALGS = (TpmAlg.SHA1, TpmAlg.SHA256, TpmAlg.SHA384, TpmAlg.SHA512)

# DER encoded ASN.1 NULL
ASN1_NULL = b'\x05\x00'

@dataclasses.dataclass(frozen=True)
class AlgId:
    '''
    An AlgorithmIdentifier as an OID and the raw DER of its parameters.

    Args:
        oid (str): The dotted algorithm OID.
        params (bytes): The DER encoded parameters or None if they are absent.
    '''
    oid: str
    params: Optional[bytes] = None

    @property
    def name(self):
        info = _sigalgsbyoid.get(self.oid)
        if info is None:
            return self.oid
        return info[0]

# (keytype, hashalg) -> (name, oid, params)
SIGALGS = {
    (TpmAlg.RSA, TpmAlg.SHA1): ('sha1WithRSAEncryption', '1.2.840.113549.1.1.5', ASN1_NULL),
    (TpmAlg.RSA, TpmAlg.SHA256): ('sha256WithRSAEncryption', '1.2.840.113549.1.1.11', ASN1_NULL),
    (TpmAlg.RSA, TpmAlg.SHA384): ('sha384WithRSAEncryption', '1.2.840.113549.1.1.12', ASN1_NULL),
    (TpmAlg.RSA, TpmAlg.SHA512): ('sha512WithRSAEncryption', '1.2.840.113549.1.1.13', ASN1_NULL),
    (TpmAlg.ECC, TpmAlg.SHA1): ('ecdsa-with-SHA1', '1.2.840.10045.4.1', None),
    (TpmAlg.ECC, TpmAlg.SHA256): ('ecdsa-with-SHA256', '1.2.840.10045.4.3.2', None),
    (TpmAlg.ECC, TpmAlg.SHA384): ('ecdsa-with-SHA384', '1.2.840.10045.4.3.3', None),
    (TpmAlg.ECC, TpmAlg.SHA512): ('ecdsa-with-SHA512', '1.2.840.10045.4.3.4', None),
}

_sigalgsbyoid = {oid: (name, keytype, hashalg) for ((keytype, hashalg), (name, oid, _)) in SIGALGS.items()}

HASHCTORS = {
    TpmAlg.SHA1: c_hashes.SHA1,
    TpmAlg.SHA256: c_hashes.SHA256,
    TpmAlg.SHA384: c_hashes.SHA384,
    TpmAlg.SHA512: c_hashes.SHA512,
}

_hashnames = {
    'SHA1': TpmAlg.SHA1,
    'SHA256': TpmAlg.SHA256,
    'SHA384': TpmAlg.SHA384,
    'SHA512': TpmAlg.SHA512,
}

# SHA256WITHECDSA, SHA256WITHRSA, SHA256WITHRSAENCRYPTION
sigalgname_re = regex.compile(r'^(?P<hash>SHA(?:1|256|384|512))WITH(?P<key>RSA(?:ENCRYPTION)?|ECDSA)$')
# ECDSA-WITH-SHA256
ecdsaname_re = regex.compile(r'^ECDSA-WITH-(?P<hash>SHA(?:1|256|384|512))$')

def getSigAlgId(keytype: TpmAlg, hashalg: TpmAlg) -> AlgId:
    '''
    Resolve the signature AlgorithmIdentifier for a key type and digest.

    Args:
        keytype: TpmAlg.RSA or TpmAlg.ECC.
        hashalg: One of the SHA digests in HASHALGS.

    Examples:
        Get the identifier for an ECDSA P-256 signing key::

            algid = getSigAlgId(TpmAlg.ECC, TpmAlg.SHA256)

    Raises:
        NoSuchAlgo: If the combination is not supported.

    Returns:
        The AlgId for the combination.
    '''
    info = SIGALGS.get((keytype, hashalg))
    if info is None:
        mesg = f'No signature algorithm for key type {_algname(keytype)} and digest {_algname(hashalg)}.'
        raise p_exc.NoSuchAlgo(mesg=mesg, keytype=_algname(keytype), hashalg=_algname(hashalg))

    name, oid, params = info
    return AlgId(oid=oid, params=params)

def getSigAlgInfo(algid: AlgId) -> Tuple[TpmAlg, TpmAlg]:
    '''
    Get the (keytype, hashalg) tuple for a signature AlgId.
    '''
    info = _sigalgsbyoid.get(algid.oid)
    if info is None:
        raise p_exc.NoSuchAlgo(mesg=f'Unknown signature algorithm: {algid.oid}', oid=algid.oid)

    return info[1], info[2]

def getHashAlg(hashalg: TpmAlg) -> c_hashes.HashAlgorithm:
    ctor = HASHCTORS.get(hashalg)
    if ctor is None:
        raise p_exc.NoSuchAlgo(mesg=f'Unsupported digest: {_algname(hashalg)}', hashalg=_algname(hashalg))
    return ctor()

def getKeyType(key) -> TpmAlg:
    '''
    Get the TpmAlg key type for a cryptography public or private key.
    '''
    if isinstance(key, (c_rsa.RSAPrivateKey, c_rsa.RSAPublicKey)):
        return TpmAlg.RSA

    if isinstance(key, (c_ec.EllipticCurvePrivateKey, c_ec.EllipticCurvePublicKey)):
        return TpmAlg.ECC

    raise p_exc.NoSuchAlgo(mesg=f'Unsupported key type: {type(key).__name__}', keytype=type(key).__name__)

def parseSigAlgName(name: str) -> Tuple[TpmAlg, TpmAlg]:
    '''
    Parse a signing algorithm name into a (keytype, hashalg) tuple.

    Args:
        name: A name such as SHA256WITHECDSA, SHA256WITHRSAENCRYPTION,
              sha384WithRSAEncryption or ecdsa-with-SHA512.

    Raises:
        NoSuchAlgo: If the name is not recognized.

    Returns:
        The key type and digest named by the algorithm.
    '''
    text = name.strip().upper()

    match = sigalgname_re.match(text)
    if match is not None:
        keytype = TpmAlg.ECC if match.group('key') == 'ECDSA' else TpmAlg.RSA
        return keytype, _hashnames[match.group('hash')]

    match = ecdsaname_re.match(text)
    if match is not None:
        return TpmAlg.ECC, _hashnames[match.group('hash')]

    raise p_exc.NoSuchAlgo(mesg=f'Unknown signing algorithm name: {name}', name=name)

def _algname(valu):
    try:
        return TpmAlg(valu).name
    except ValueError:
        return repr(valu)
