import enum
import logging

from typing import FrozenSet, Iterable

import cryptography.x509 as c_x509

import partcert.exc as p_exc

logger = logging.getLogger(__name__)

class KeyAttr(enum.IntFlag):
    '''
    TPMA_OBJECT attribute bits which describe what a key may be used for.
    '''
    FIXEDTPM = 1 << 1
    STCLEAR = 1 << 2
    FIXEDPARENT = 1 << 4
    SENSITIVEDATAORIGIN = 1 << 5
    USERWITHAUTH = 1 << 6
    ADMINWITHPOLICY = 1 << 7
    NODA = 1 << 10
    ENCRYPTEDDUPLICATION = 1 << 11
    RESTRICTED = 1 << 16
    DECRYPT = 1 << 17
    SIGN = 1 << 18
    X509SIGN = 1 << 19

KEYATTR_NAMES = tuple(attr.name.lower() for attr in KeyAttr)

# RFC 5280 bit name -> cryptography KeyUsage argument
KEYUSAGE_ARGS = {
    'digitalSignature': 'digital_signature',
    'nonRepudiation': 'content_commitment',
    'keyEncipherment': 'key_encipherment',
    'dataEncipherment': 'data_encipherment',
    'keyAgreement': 'key_agreement',
    'keyCertSign': 'key_cert_sign',
    'cRLSign': 'crl_sign',
    'encipherOnly': 'encipher_only',
    'decipherOnly': 'decipher_only',
}

KEYUSAGE_NAMES = tuple(KEYUSAGE_ARGS.keys())

def getKeyUsage(attrs: KeyAttr) -> c_x509.KeyUsage:
    '''
    Derive the X.509 key usage for a set of key attributes.

    Notes:
        * SIGN sets digitalSignature.
        * DECRYPT sets keyEncipherment for restricted keys and dataEncipherment otherwise.
        * FIXEDTPM sets nonRepudiation.

    Returns:
        The KeyUsage extension value. No recognized attributes gives an empty usage.
    '''
    names = set()

    if attrs & KeyAttr.SIGN:
        names.add('digitalSignature')

    if attrs & KeyAttr.DECRYPT:
        if attrs & KeyAttr.RESTRICTED:
            names.add('keyEncipherment')
        else:
            names.add('dataEncipherment')

    if attrs & KeyAttr.FIXEDTPM:
        names.add('nonRepudiation')

    return initKeyUsage(names)

def initKeyUsage(names: Iterable[str]) -> c_x509.KeyUsage:
    '''
    Construct a KeyUsage from RFC 5280 key usage bit names.
    '''
    kwargs = {arg: False for arg in KEYUSAGE_ARGS.values()}
    for name in names:
        arg = KEYUSAGE_ARGS.get(name)
        if arg is None:
            raise p_exc.BadArg(mesg=f'Unknown key usage: {name}', name=name)
        kwargs[arg] = True

    try:
        return c_x509.KeyUsage(**kwargs)
    except ValueError as e:
        raise p_exc.BadArg(mesg=f'Invalid key usage: {e}') from e

def getKeyUsageNames(keyusage: c_x509.KeyUsage) -> FrozenSet[str]:
    '''
    Get the RFC 5280 names of the bits set in a KeyUsage.
    '''
    names = set()
    for name, arg in KEYUSAGE_ARGS.items():
        # encipher_only and decipher_only raise unless key_agreement is set
        if arg in ('encipher_only', 'decipher_only') and not keyusage.key_agreement:
            continue
        if getattr(keyusage, arg):
            names.add(name)
    return frozenset(names)

def parseKeyAttrs(names: Iterable[str]) -> KeyAttr:
    '''
    Parse lower case attribute names such as "sign" or "fixedtpm" into a KeyAttr.
    '''
    attrs = KeyAttr(0)
    for name in names:
        try:
            attrs |= KeyAttr[name.upper()]
        except KeyError:
            raise p_exc.BadArg(mesg=f'Unknown key attribute: {name}', name=name) from None
    return attrs
