'''
Signature engine dispatch for RSA and ECC keys.
'''
import cryptography.hazmat.primitives.asymmetric.ec as c_ec
import cryptography.hazmat.primitives.asymmetric.rsa as c_rsa

import partcert.exc as p_exc

import partcert.lib.algs as p_algs
import partcert.lib.crypto.ecc as p_ecc
import partcert.lib.crypto.rsa as p_rsa

def getPriKey(priv):
    '''
    Wrap a cryptography private key in the matching PriKey helper.
    '''
    if isinstance(priv, (p_ecc.PriKey, p_rsa.PriKey)):
        return priv

    if isinstance(priv, c_ec.EllipticCurvePrivateKey):
        return p_ecc.PriKey(priv)

    if isinstance(priv, c_rsa.RSAPrivateKey):
        return p_rsa.PriKey(priv)

    raise p_exc.NoSuchAlgo(mesg=f'Unsupported private key type: {type(priv).__name__}')

def getPubKey(publ):
    '''
    Wrap a cryptography public key in the matching PubKey helper.
    '''
    if isinstance(publ, (p_ecc.PubKey, p_rsa.PubKey)):
        return publ

    if isinstance(publ, c_ec.EllipticCurvePublicKey):
        return p_ecc.PubKey(publ)

    if isinstance(publ, c_rsa.RSAPublicKey):
        return p_rsa.PubKey(publ)

    raise p_exc.NoSuchAlgo(mesg=f'Unsupported public key type: {type(publ).__name__}')

def sign(priv, byts, algid: p_algs.AlgId) -> bytes:
    '''
    Sign bytes with a private key using the signature algorithm in algid.
    '''
    return getPriKey(priv).sign(byts, algid=algid)

def verify(publ, byts, sign, algid: p_algs.AlgId) -> bool:
    '''
    Verify a signature with a public key using the signature algorithm in algid.
    '''
    return getPubKey(publ).verify(byts, sign, algid=algid)
