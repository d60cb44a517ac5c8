import logging

import cryptography.hazmat.primitives.hashes as c_hashes
import cryptography.hazmat.primitives.asymmetric.ec as c_ec
import cryptography.hazmat.primitives.asymmetric.utils as c_utils
from cryptography.exceptions import InvalidSignature

import partcert.exc as p_exc

import partcert.lib.algs as p_algs

logger = logging.getLogger(__name__)

def _getHashAlg(algid):
    '''
    Get the digest for an ECDSA signature AlgId ( or sha256 by default ).
    '''
    if algid is None:
        return c_hashes.SHA256()

    keytype, hashalg = p_algs.getSigAlgInfo(algid)
    if keytype != p_algs.TpmAlg.ECC:
        raise p_exc.NoSuchAlgo(mesg=f'{algid.name} is not an ECDSA signature algorithm.', oid=algid.oid)

    return p_algs.getHashAlg(hashalg)

def _digest(chosen_hash, byts):
    hasher = c_hashes.Hash(chosen_hash)
    hasher.update(byts)
    return hasher.finalize()

class PriKey:
    '''
    A helper class for using ECC private keys.
    '''
    def __init__(self, priv):
        self.priv = priv  # type: c_ec.EllipticCurvePrivateKey
        self.publ = PubKey(self.priv.public_key())

    def sign(self, byts, algid=None):
        '''
        Compute the ECDSA signature for the given bytestream.

        Args:
            byts (bytes): The bytes to sign.
            algid (AlgId): An ecdsa-with-SHA* AlgId selecting the digest. Defaults to SHA256.

        Returns:
            bytes: The DER encoded ECDSA signature bytes.
        '''
        chosen_hash = _getHashAlg(algid)
        digest = _digest(chosen_hash, byts)
        return self.priv.sign(digest,
                              c_ec.ECDSA(c_utils.Prehashed(chosen_hash))
                              )

    def public(self):
        '''
        Get the PubKey which corresponds to the ECC PriKey.

        Returns:
            PubKey: A new PubKey object whose key corresponds to the private key.
        '''
        return PubKey(self.priv.public_key())

class PubKey:
    '''
    A helper class for using ECC public keys.
    '''

    def __init__(self, publ):
        self.publ = publ  # type: c_ec.EllipticCurvePublicKey

    def verify(self, byts, sign, algid=None):
        '''
        Verify the signature for the given bytes using the ECC
        public key.

        Args:
            byts (bytes): The data bytes.
            sign (bytes): The signature bytes.
            algid (AlgId): An ecdsa-with-SHA* AlgId selecting the digest. Defaults to SHA256.

        Returns:
            bool: True if the data was verified, False otherwise.
        '''
        chosen_hash = _getHashAlg(algid)
        digest = _digest(chosen_hash, byts)
        try:
            self.publ.verify(sign,
                             digest,
                             c_ec.ECDSA(c_utils.Prehashed(chosen_hash))
                             )
            return True
        except InvalidSignature:
            logger.debug('ECDSA signature failed to verify (%d bytes)', len(byts))
            return False

