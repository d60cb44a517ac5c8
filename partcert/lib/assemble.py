'''
Reassemble a complete X.509 certificate from a partial certificate, the
device supplied added-to structure and the device signature.
'''
import logging
import dataclasses

import pyasn1.type.univ as a_univ
import pyasn1_modules.rfc5280 as a_rfc5280

import cryptography.x509 as c_x509

import partcert.exc as p_exc
import partcert.common as p_common

import partcert.lib.algs as p_algs
import partcert.lib.asn1 as p_asn1
import partcert.lib.logging as p_logging

from partcert.lib.partial import PartialCert
from partcert.lib.addedto import AddedTo

logger = logging.getLogger(__name__)

@dataclasses.dataclass(frozen=True)
class Assembled:
    '''
    An assembled certificate.

    Args:
        byts (bytes): The DER encoded certificate.
        cert (x509.Certificate): The parsed certificate.
    '''
    byts: bytes
    cert: c_x509.Certificate

def getSigAlg(partial: PartialCert, addedto: AddedTo) -> p_algs.AlgId:
    '''
    Get the effective signature algorithm for a partial certificate and added-to pair.

    Raises:
        BadCertParts: If neither half carries the algorithm or both carry different ones.
    '''
    if partial.sigalg is None:
        if addedto.sigalg is None:
            raise p_exc.BadCertParts(mesg='Neither the partial certificate nor the added-to has a signature algorithm.')
        return addedto.sigalg

    if addedto.sigalg is None:
        return partial.sigalg

    if addedto.sigalg != partial.sigalg:
        mesg = f'Signature algorithm conflict: partial has {partial.sigalg.name}, added-to has {addedto.sigalg.name}.'
        raise p_exc.BadCertParts(mesg=mesg, partial=partial.sigalg.oid, addedto=addedto.sigalg.oid)

    logger.warning('Signature algorithm %s is present in both the partial certificate and the added-to.',
                   partial.sigalg.name, extra=p_logging.getLogExtra(oid=partial.sigalg.oid))
    return partial.sigalg

def assemble(partial: PartialCert, addedto: AddedTo, sign: bytes) -> Assembled:
    '''
    Assemble the DER certificate.

    Args:
        partial: The partial certificate given to the device.
        addedto: The decoded added-to structure returned by the device.
        sign: The signature returned by the device.

    Notes:
        The tbsCertificate fields are laid out in RFC 5280 order. Absent unique
        identifiers are omitted, as is an empty extension set.

    Raises:
        BadCertParts: If the signature algorithm is missing or conflicting.
        BadAsn1Item: If the certificate can not be encoded or the result does not parse.

    Returns:
        The certificate bytes and the parsed certificate.
    '''
    algid = getSigAlg(partial, addedto)

    tbs = a_rfc5280.TBSCertificate()
    tbs['version'] = 'v3'
    tbs['serialNumber'] = addedto.serial
    tbs['signature'] = p_asn1.enAlgId(algid)
    tbs['issuer'] = p_asn1.enName(partial.issuer)
    tbs['validity'] = p_asn1.enValidity(partial.notbefore, partial.notafter)
    tbs['subject'] = p_asn1.enName(partial.subject)
    tbs['subjectPublicKeyInfo'] = p_asn1.unSpki(addedto.spki, 'AddedTo')

    if partial.issueruid is not None:
        tbs['issuerUniqueID'] = p_asn1.enUniqueId(partial.issueruid, 1)

    if partial.subjectuid is not None:
        tbs['subjectUniqueID'] = p_asn1.enUniqueId(partial.subjectuid, 2)

    if partial.extensions:
        tbs['extensions'] = p_asn1.enExtensions(partial.extensions)

    cert = a_rfc5280.Certificate()
    cert['tbsCertificate'] = tbs
    cert['signatureAlgorithm'] = p_asn1.enAlgId(algid)
    cert['signature'] = a_univ.BitString.fromOctetString(sign)

    byts = p_asn1.en(cert, name='Certificate')

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug('Assembled certificate (serial=%d sigalg=%s): %s', addedto.serial, algid.name,
                     p_common.ehex(byts))

    try:
        parsed = c_x509.load_der_x509_certificate(byts)
    except ValueError as e:
        raise p_exc.BadAsn1Item(mesg=f'Assembled certificate does not parse: {e}', name='Certificate') from e

    return Assembled(byts=byts, cert=parsed)
