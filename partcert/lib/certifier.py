'''
The device seam for TPM2_CertifyX509 and the driver which runs the whole
certification flow against it.
'''
import logging

from typing import Optional, Tuple

import partcert.exc as p_exc
import partcert.common as p_common

import partcert.lib.oracle as p_oracle
import partcert.lib.logging as p_logging
import partcert.lib.assemble as p_assemble

from partcert.lib.partial import PartialCert
from partcert.lib.addedto import AddedTo

logger = logging.getLogger(__name__)

class Certifier:
    '''
    A device which certifies a key given the DER bytes of a partial certificate.
    '''
    def certify(self, byts: bytes) -> Tuple[bytes, bytes]:
        '''
        Certify a key.

        Args:
            byts: The DER encoded partial certificate.

        Returns:
            A tuple of the signature bytes and the DER encoded added-to bytes.
        '''
        raise p_exc.NoSuchImpl(mesg=f'{self.__class__.__name__} does not implement certify().',
                               name='certify')

class SimCertifier(Certifier):
    '''
    A Certifier backed by conventional certificate signing.

    Args:
        signkey: The private key which signs certificates (a cryptography key or PriKey helper).
        subjpub: The public key being certified (a cryptography key or PubKey helper).
        signalg (str): The signing algorithm name (for example SHA256WITHRSA).
        serial (int): Optional fixed serial number.
    '''
    def __init__(self, signkey, subjpub, signalg, serial=None):
        self.signkey = signkey
        self.subjpub = subjpub
        self.signalg = signalg
        self.serial = serial
        self.last = None  # type: Optional[p_oracle.SimResult]

    def certify(self, byts):
        partial = PartialCert.load(byts)
        self.last = p_oracle.simulate(partial, self.subjpub, self.signkey, self.signalg, serial=self.serial)
        return self.last.cert.signature, self.last.addedto.en()

def certifyX509(certifier: Certifier, partial: PartialCert) -> p_assemble.Assembled:
    '''
    Run the certification flow for a partial certificate.

    Args:
        certifier: The device.
        partial: The partial certificate.

    Examples:
        Certify a key with a simulated device::

            certifier = SimCertifier(signkey, subjkey.public_key(), 'SHA256WITHECDSA')
            assembled = certifyX509(certifier, genPartialCert())

    Returns:
        The assembled certificate.
    '''
    byts = partial.en()
    logger.debug('Sending %d byte partial certificate: %s', len(byts), p_common.ehex(byts))

    sign, addedbyts = certifier.certify(byts)
    logger.debug('Device returned %d byte signature and %d byte added-to', len(sign), len(addedbyts))

    addedto = AddedTo.load(addedbyts)
    assembled = p_assemble.assemble(partial, addedto, sign)

    subject = partial.subject.rfc4514_string()
    logger.info('Certified %s (serial=%d)', subject, addedto.serial,
                extra=p_logging.getLogExtra(subject=subject, serial=addedto.serial))
    return assembled
