'''
The "added-to" structure returned by the device from TPM2_CertifyX509.

The device fills in the certificate fields it is authoritative for::

    SEQUENCE {
        version [0] EXPLICIT INTEGER (2),
        serialNumber INTEGER,
        signature AlgorithmIdentifier OPTIONAL,
        subjectPublicKeyInfo SubjectPublicKeyInfo
    }
'''
import logging
import dataclasses

from typing import Optional

import partcert.exc as p_exc

import partcert.lib.algs as p_algs
import partcert.lib.asn1 as p_asn1
import partcert.lib.const as p_const

logger = logging.getLogger(__name__)

@dataclasses.dataclass(frozen=True)
class AddedTo:
    '''
    The certificate fields supplied by the device.

    Args:
        serial (int): The device assigned serial number.
        spki (bytes): The DER encoded SubjectPublicKeyInfo of the certified key.
        sigalg (AlgId): The signature algorithm, present only when the device selected it.
        version (int): The certificate version. Only 2 (X.509 v3) is valid.
    '''
    serial: int
    spki: bytes
    sigalg: Optional[p_algs.AlgId] = None
    version: int = p_const.X509_V3

    def __post_init__(self):

        if self.version != p_const.X509_V3:
            raise p_exc.BadArg(mesg=f'AddedTo version must be {p_const.X509_V3}, got {self.version!r}.',
                               name='version')

        if not isinstance(self.serial, int) or isinstance(self.serial, bool):
            raise p_exc.BadArg(mesg='AddedTo serial must be an int.', name='serial')

        if not isinstance(self.spki, bytes):
            raise p_exc.BadArg(mesg='AddedTo spki must be bytes.', name='spki')

        if self.sigalg is not None and not isinstance(self.sigalg, p_algs.AlgId):
            raise p_exc.BadArg(mesg='AddedTo sigalg must be an AlgId.', name='sigalg')

    def en(self) -> bytes:
        '''
        Encode the canonical DER bytes.
        '''
        elems = [
            p_asn1.en(p_asn1.enVersion(self.version), name='AddedTo'),
            p_asn1.en(p_asn1.enSerial(self.serial), name='AddedTo'),
        ]

        if self.sigalg is not None:
            elems.append(p_asn1.en(p_asn1.enAlgId(self.sigalg), name='AddedTo'))

        elems.append(self.spki)

        return p_asn1.enseq(elems, name='AddedTo')

    @staticmethod
    def load(byts):
        '''
        Decode the DER bytes returned by the device.

        Args:
            byts (bytes): The added-to bytes.

        Notes:
            The bytes are untrusted. Any structural problem is reported with the
            name of the offending field, and the decoded value must re-encode to
            exactly the input bytes.

        Raises:
            BadAsn1Bytes: If the bytes are truncated, mis-tagged, have trailing data or are not canonical.

        Returns:
            AddedTo: The decoded structure.
        '''
        name = 'AddedTo'
        byts = bytes(byts)

        elems = p_asn1.unseq(byts, name)
        if len(elems) not in (3, 4):
            mesg = f'{name} has {len(elems)} elements (expected 3 or 4).'
            raise p_exc.BadAsn1Bytes(mesg=mesg, name=name, size=len(elems))

        p_asn1.reqtag(elems[0], p_asn1.TAG_EXPLICIT_0, name, 'version')
        version = p_asn1.unVersion(elems[0], name)
        if version != p_const.X509_V3:
            mesg = f'{name} version is {version} (expected {p_const.X509_V3}).'
            raise p_exc.BadAsn1Bytes(mesg=mesg, name=name, field='version')

        p_asn1.reqtag(elems[1], p_asn1.TAG_INTEGER, name, 'serialNumber')
        serial = p_asn1.unSerial(elems[1], name)

        sigalg = None
        if len(elems) == 4:
            p_asn1.reqtag(elems[2], p_asn1.TAG_SEQUENCE, name, 'signature')
            sigalg = p_asn1.unAlgId(elems[2], name, field='signature')

        spki = elems[-1]
        p_asn1.reqtag(spki, p_asn1.TAG_SEQUENCE, name, 'subjectPublicKeyInfo')
        p_asn1.unSpki(spki, name)

        added = AddedTo(serial=serial, spki=spki, sigalg=sigalg, version=version)
        if added.en() != byts:
            raise p_exc.BadAsn1Bytes(mesg=f'{name} is not canonically encoded.', name=name)

        return added
