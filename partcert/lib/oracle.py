'''
Conventional single step certificate signing, split into the two halves
produced by TPM2_CertifyX509.

The result is used to check that partial certificate reassembly reproduces
exactly what a full certificate signer would have produced.
'''
import logging
import datetime
import dataclasses

from typing import Optional

from OpenSSL import crypto  # type: ignore

import cryptography.x509 as c_x509
import cryptography.exceptions as c_exc

import partcert.exc as p_exc

import partcert.lib.algs as p_algs
import partcert.lib.asn1 as p_asn1
import partcert.lib.const as p_const
import partcert.lib.crypto.engine as p_engine

from partcert.lib.partial import PartialCert
from partcert.lib.addedto import AddedTo

logger = logging.getLogger(__name__)

TEN_YEARS_TD = datetime.timedelta(days=3652)

@dataclasses.dataclass(frozen=True)
class SimResult:
    '''
    The result of a simulated certification.

    Args:
        cert (x509.Certificate): The certificate signed in one step.
        addedto (AddedTo): The fields a device would have returned for it.
    '''
    cert: c_x509.Certificate
    addedto: AddedTo

def _unpackContextError(e: crypto.X509StoreContextError) -> str:
    if e.args and isinstance(e.args[0], str):
        return e.args[0]
    return 'Certificate failed to verify.'

def simulate(partial: PartialCert, subjpub, signkey, signalg: str, serial: Optional[int] = None) -> SimResult:
    '''
    Sign a full certificate for a partial certificate and split out the added-to fields.

    Args:
        partial: The partial certificate.
        subjpub: The public key being certified (a cryptography key or PubKey helper).
        signkey: The private key which signs the certificate (a cryptography key or PriKey helper).
        signalg: The signing algorithm name (for example SHA256WITHECDSA).
        serial: The serial number. Defaults to a random serial.

    Notes:
        Extensions are copied verbatim, in order, with their criticality. The
        signature algorithm is only placed in the added-to when the partial
        certificate did not pre-select it.

    Raises:
        NoSuchAlgo: If signalg is unknown or can not be used with the signing key.
        BadArg: If the partial certificate can not be produced by a conventional signer
                or pre-selects a different algorithm.

    Returns:
        The certificate and the matching added-to structure.
    '''
    keytype, hashalg = p_algs.parseSigAlgName(signalg)

    signkey = p_engine.getPriKey(signkey).priv
    subjpub = p_engine.getPubKey(subjpub).publ

    signtype = p_algs.getKeyType(signkey)
    if signtype != keytype:
        mesg = f'Signing algorithm {signalg} does not match the {signtype.name} signing key.'
        raise p_exc.NoSuchAlgo(mesg=mesg, name=signalg)

    if partial.issueruid is not None or partial.subjectuid is not None:
        raise p_exc.BadArg(mesg='Partial certificates with unique identifiers can not be simulated.')

    if serial is None:
        serial = c_x509.random_serial_number()

    builder = c_x509.CertificateBuilder()
    builder = builder.issuer_name(partial.issuer)
    builder = builder.subject_name(partial.subject)
    builder = builder.not_valid_before(partial.notbefore)
    builder = builder.not_valid_after(partial.notafter)
    builder = builder.serial_number(serial)
    builder = builder.public_key(subjpub)

    for extn in partial.extensions:
        valu = c_x509.UnrecognizedExtension(c_x509.ObjectIdentifier(extn.oid), extn.value)
        builder = builder.add_extension(valu, critical=extn.critical)

    try:
        cert = builder.sign(private_key=signkey, algorithm=p_algs.getHashAlg(hashalg))
    except c_exc.UnsupportedAlgorithm as e:
        raise p_exc.NoSuchAlgo(mesg=f'Signing algorithm {signalg} is not supported: {e}', name=signalg) from e
    except (TypeError, ValueError) as e:
        raise p_exc.BadArg(mesg=f'Failed to sign certificate: {e}') from e

    tbs = p_asn1.unseq(cert.tbs_certificate_bytes, 'TBSCertificate')
    sigalg = p_asn1.unAlgId(tbs[2], 'TBSCertificate')

    if partial.sigalg is not None and partial.sigalg != sigalg:
        mesg = f'Partial certificate selects {partial.sigalg.name} but the certificate was signed with {sigalg.name}.'
        raise p_exc.BadArg(mesg=mesg)

    addedto = AddedTo(
        serial=cert.serial_number,
        spki=tbs[6],
        sigalg=sigalg if partial.sigalg is None else None,
        version=cert.version.value,
    )

    logger.debug('Simulated certification (serial=%d sigalg=%s)', cert.serial_number, sigalg.name)

    return SimResult(cert=cert, addedto=addedto)

def cmprCerts(byts0: bytes, byts1: bytes) -> None:
    '''
    Require two DER certificates to be byte-identical.

    Raises:
        CertMismatch: If they differ. The error carries both sizes and the first differing offset.
    '''
    if byts0 == byts1:
        return

    offs = next((i for i, (a, b) in enumerate(zip(byts0, byts1)) if a != b), min(len(byts0), len(byts1)))

    logger.warning('Certificate mismatch at offset %d (sizes %d and %d)', offs, len(byts0), len(byts1))
    raise p_exc.CertMismatch(mesg=f'Certificates differ at offset {offs}.', size0=len(byts0), size1=len(byts1),
                             offset=offs)

def verifyCert(cert: c_x509.Certificate, pubkey) -> None:
    '''
    Verify the signature on a certificate with the signer public key.

    Raises:
        BadCertVerify: If the signature does not verify.
    '''
    algid = p_algs.AlgId(oid=cert.signature_algorithm_oid.dotted_string)
    if not p_engine.verify(pubkey, cert.tbs_certificate_bytes, cert.signature, algid):
        raise p_exc.BadCertVerify(mesg=f'Certificate signature failed to verify (serial={cert.serial_number}).')

def genIssuerCert(signkey, name: str = p_const.DEFAULT_ISSUER, signalg: Optional[str] = None) -> c_x509.Certificate:
    '''
    Generate a self-signed CA certificate for a signing key.

    Args:
        signkey: The private key (a cryptography key or PriKey helper).
        name: The RFC 4514 name used for both the subject and issuer.
        signalg: The signing algorithm name. Defaults to SHA256 with the key type of signkey.

    Examples:
        Make a CA certificate which a partial certificate issuer may refer to::

            cacert = genIssuerCert(signkey, name='CN=TPM Test Issuer,O=TPM Test Suite')

    Returns:
        The CA certificate.
    '''
    hashalg = p_algs.TpmAlg.SHA256
    if signalg is not None:
        _, hashalg = p_algs.parseSigAlgName(signalg)

    signkey = p_engine.getPriKey(signkey).priv
    xname = c_x509.Name.from_rfc4514_string(name)

    now = datetime.datetime.now(datetime.UTC)

    builder = c_x509.CertificateBuilder()
    builder = builder.subject_name(xname)
    builder = builder.issuer_name(xname)
    builder = builder.not_valid_before(now)
    builder = builder.not_valid_after(now + TEN_YEARS_TD)
    builder = builder.serial_number(c_x509.random_serial_number())
    builder = builder.public_key(signkey.public_key())
    builder = builder.add_extension(
        c_x509.BasicConstraints(ca=True, path_length=None), critical=True,
    )

    return builder.sign(private_key=signkey, algorithm=p_algs.getHashAlg(hashalg))

def verifyIssuedBy(cert: c_x509.Certificate, cacert: c_x509.Certificate) -> None:
    '''
    Verify that a certificate was issued by a CA certificate.

    Notes:
        This checks a single link. The CA certificate is trusted directly.

    Raises:
        BadCertVerify: If the certificate does not verify against the CA certificate.
    '''
    store = crypto.X509Store()
    store.add_cert(crypto.X509.from_cryptography(cacert))
    store.set_flags(crypto.X509StoreFlags.PARTIAL_CHAIN)
    ctx = crypto.X509StoreContext(store, crypto.X509.from_cryptography(cert))
    try:
        ctx.verify_certificate()
    except crypto.X509StoreContextError as e:
        raise p_exc.BadCertVerify(mesg=_unpackContextError(e)) from None
