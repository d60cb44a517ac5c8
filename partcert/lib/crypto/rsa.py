import cryptography.hazmat.primitives.hashes as c_hashes
import cryptography.hazmat.primitives.asymmetric.rsa as c_rsa
import cryptography.hazmat.primitives.asymmetric.padding as c_padding

import partcert.exc as p_exc

import partcert.lib.algs as p_algs

from cryptography.exceptions import InvalidSignature

def _getHashAlg(algid):
    if algid is None:
        return c_hashes.SHA256()

    keytype, hashalg = p_algs.getSigAlgInfo(algid)
    if keytype != p_algs.TpmAlg.RSA:
        raise p_exc.NoSuchAlgo(mesg=f'{algid.name} is not an RSA signature algorithm.', oid=algid.oid)

    return p_algs.getHashAlg(hashalg)

class PriKey:
    '''
    A helper class for using RSA private keys.

    Signing methods use RSASSA-PKCS1-v1_5 as required by the sha*WithRSAEncryption
    X.509 signature algorithms.
    '''
    def __init__(self, priv):
        self.priv = priv  # type: c_rsa.RSAPrivateKey
        self.publ = self.public()

    def sign(self, byts, algid=None):
        '''
        Compute the RSA signature for the given bytestream.

        Args:
            byts (bytes): The bytes to sign.
            algid (AlgId): A sha*WithRSAEncryption AlgId selecting the digest. Defaults to SHA256.

        Returns:
            bytes: The RSA Signature bytes.
        '''
        return self.priv.sign(byts, c_padding.PKCS1v15(), _getHashAlg(algid))

    def public(self):
        '''
        Get the PubKey which corresponds to the RSA PriKey.

        Returns:
            PubKey: A new PubKey object whose key corresponds to the private key.
        '''
        return PubKey(self.priv.public_key())

class PubKey:
    '''
    A helper class for using RSA public keys.
    '''

    def __init__(self, publ):
        self.publ = publ  # type: c_rsa.RSAPublicKey

    def verify(self, byts, sign, algid=None):
        '''
        Verify the signature for the given bytes using the RSA
        public key.

        Args:
            byts (bytes): The data bytes.
            sign (bytes): The signature bytes.
            algid (AlgId): A sha*WithRSAEncryption AlgId selecting the digest. Defaults to SHA256.

        Returns:
            bool: True if the data was verified, False otherwise.
        '''
        chosen_hash = _getHashAlg(algid)
        try:
            self.publ.verify(sign, byts, c_padding.PKCS1v15(), chosen_hash)
            return True
        except InvalidSignature:
            return False

