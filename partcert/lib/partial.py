'''
The partial certificate template given to the device by TPM2_CertifyX509.
'''
import logging
import datetime
import dataclasses

from typing import Optional, Tuple, Union

import cryptography.x509 as c_x509

import partcert.exc as p_exc
import partcert.common as p_common

import partcert.lib.algs as p_algs
import partcert.lib.asn1 as p_asn1
import partcert.lib.const as p_const
import partcert.lib.config as p_config
import partcert.lib.keyusage as p_keyusage

logger = logging.getLogger(__name__)

OID_KEYUSAGE = c_x509.ExtensionOID.KEY_USAGE.dotted_string

DEFAULT_NOTBEFORE = datetime.datetime(2000, 1, 1, tzinfo=datetime.UTC)
DEFAULT_NOTAFTER = datetime.datetime(2999, 12, 31, tzinfo=datetime.UTC)

MIN_YEAR = 1950
MAX_YEAR = 9999

@dataclasses.dataclass(frozen=True)
class CertExt:
    '''
    A certificate extension carried as its OID, criticality and DER extnValue.
    '''
    oid: str
    critical: bool
    value: bytes

    def __post_init__(self):
        if not isinstance(self.value, bytes):
            raise p_exc.BadArg(mesg=f'Extension value for {self.oid} must be bytes.', oid=self.oid)
        object.__setattr__(self, 'critical', bool(self.critical))

    @staticmethod
    def fromExtType(extn: c_x509.ExtensionType, critical=False):
        '''
        Create a CertExt from a cryptography ExtensionType value.
        '''
        return CertExt(oid=extn.oid.dotted_string, critical=critical, value=extn.public_bytes())

    @staticmethod
    def fromExtension(extn: c_x509.Extension):
        '''
        Create a CertExt from a cryptography Extension (as found on a parsed Certificate).
        '''
        return CertExt.fromExtType(extn.value, critical=extn.critical)

def _normTime(valu, name):
    if not isinstance(valu, datetime.datetime):
        raise p_exc.BadArg(mesg=f'{name} must be a datetime.', name=name)

    if valu.tzinfo is None:
        valu = valu.replace(tzinfo=datetime.UTC)
    else:
        try:
            valu = valu.astimezone(datetime.UTC)
        except OverflowError:
            raise p_exc.BadArg(mesg=f'{name} is outside the datetime range in UTC.', name=name) from None

    valu = valu.replace(microsecond=0)

    if not MIN_YEAR <= valu.year <= MAX_YEAR:
        raise p_exc.BadArg(mesg=f'{name} year {valu.year} is outside {MIN_YEAR}..{MAX_YEAR}.', name=name)

    return valu

def _normName(valu, name) -> c_x509.Name:
    if isinstance(valu, c_x509.Name):
        return valu

    if isinstance(valu, str):
        try:
            return c_x509.Name.from_rfc4514_string(valu)
        except ValueError as e:
            raise p_exc.BadArg(mesg=f'Invalid {name} name {valu!r}: {e}', name=name) from e

    raise p_exc.BadArg(mesg=f'{name} must be an x509.Name or an RFC 4514 string.', name=name)

def _normExt(valu) -> CertExt:
    if isinstance(valu, CertExt):
        return valu

    if isinstance(valu, c_x509.Extension):
        return CertExt.fromExtension(valu)

    raise p_exc.BadArg(mesg=f'Unsupported extension value: {type(valu).__name__}')

@dataclasses.dataclass(frozen=True)
class PartialCert:
    '''
    The partial certificate which is sent to the device.

    Notes:
        Validity times are normalized to aware UTC datetimes with whole seconds.
        A naive datetime is taken to be UTC.
    '''
    issuer: c_x509.Name
    subject: c_x509.Name
    notbefore: datetime.datetime
    notafter: datetime.datetime
    extensions: Tuple[CertExt, ...]
    sigalg: Optional[p_algs.AlgId] = None
    issueruid: Optional[bytes] = None
    subjectuid: Optional[bytes] = None

    def __post_init__(self):

        object.__setattr__(self, 'issuer', _normName(self.issuer, 'issuer'))
        object.__setattr__(self, 'subject', _normName(self.subject, 'subject'))

        notbefore = _normTime(self.notbefore, 'notbefore')
        notafter = _normTime(self.notafter, 'notafter')
        if notbefore > notafter:
            mesg = f'notbefore ({notbefore.isoformat()}) is after notafter ({notafter.isoformat()}).'
            raise p_exc.BadArg(mesg=mesg)

        object.__setattr__(self, 'notbefore', notbefore)
        object.__setattr__(self, 'notafter', notafter)

        if self.sigalg is not None and not isinstance(self.sigalg, p_algs.AlgId):
            raise p_exc.BadArg(mesg='sigalg must be an AlgId.')

        for name in ('issueruid', 'subjectuid'):
            valu = getattr(self, name)
            if valu is not None and not isinstance(valu, bytes):
                raise p_exc.BadArg(mesg=f'{name} must be bytes.', name=name)

        exts = tuple(_normExt(e) for e in self.extensions)

        seen = set()
        for extn in exts:
            if extn.oid in seen:
                raise p_exc.BadArg(mesg=f'Duplicate extension: {extn.oid}', oid=extn.oid)
            seen.add(extn.oid)

        if OID_KEYUSAGE not in seen:
            raise p_exc.BadArg(mesg='The key usage extension is required.', oid=OID_KEYUSAGE)

        object.__setattr__(self, 'extensions', exts)

    def getExt(self, oid) -> Optional[CertExt]:
        '''
        Get an extension by dotted OID string or cryptography ObjectIdentifier.
        '''
        if isinstance(oid, c_x509.ObjectIdentifier):
            oid = oid.dotted_string

        for extn in self.extensions:
            if extn.oid == oid:
                return extn

    def en(self) -> bytes:
        '''
        DER encode the partial certificate.

        Returns:
            bytes: The DER encoded SEQUENCE sent to the device.
        '''
        elems = []
        if self.sigalg is not None:
            elems.append(p_asn1.en(p_asn1.enAlgId(self.sigalg), name='PartialCert'))

        elems.append(self.issuer.public_bytes())
        elems.append(p_asn1.en(p_asn1.enValidity(self.notbefore, self.notafter), name='PartialCert'))
        elems.append(self.subject.public_bytes())

        if self.issueruid is not None:
            elems.append(p_asn1.en(p_asn1.enUniqueId(self.issueruid, 1), name='PartialCert'))

        if self.subjectuid is not None:
            elems.append(p_asn1.en(p_asn1.enUniqueId(self.subjectuid, 2), name='PartialCert'))

        elems.append(p_asn1.en(p_asn1.enExtensions(self.extensions), name='PartialCert'))

        return p_asn1.enseq(elems, name='PartialCert')

    @staticmethod
    def load(byts):
        '''
        Decode a DER encoded partial certificate.

        Args:
            byts (bytes): The DER bytes.

        Notes:
            The optional leading AlgorithmIdentifier is detected by counting the
            untagged SEQUENCE elements. Four means it is present, three means it
            is absent.

        Raises:
            BadAsn1Bytes: If the bytes are malformed or not canonical.

        Returns:
            PartialCert: The decoded partial certificate.
        '''
        name = 'PartialCert'
        elems = p_asn1.unseq(byts, name)

        seqs = 0
        while seqs < len(elems) and elems[seqs][:1] == bytes((p_asn1.TAG_SEQUENCE,)):
            seqs += 1

        if seqs not in (3, 4):
            mesg = f'{name} has {seqs} leading SEQUENCE elements (expected 3 or 4).'
            raise p_exc.BadAsn1Bytes(mesg=mesg, name=name, size=seqs)

        sigalg = None
        if seqs == 4:
            sigalg = p_asn1.unAlgId(elems[0], name, field='signature')

        issuer, validity, subject = elems[seqs - 3:seqs]

        issuer = p_asn1.unName(issuer, name, 'issuer')
        notbefore, notafter = p_asn1.unValidity(validity, name)
        subject = p_asn1.unName(subject, name, 'subject')

        rest = list(elems[seqs:])

        issueruid = None
        if rest and rest[0][0] == p_asn1.TAG_IMPLICIT_1:
            issueruid = p_asn1.unUniqueId(rest.pop(0), 1, name, 'issuerUniqueID')

        subjectuid = None
        if rest and rest[0][0] == p_asn1.TAG_IMPLICIT_2:
            subjectuid = p_asn1.unUniqueId(rest.pop(0), 2, name, 'subjectUniqueID')

        if len(rest) != 1:
            mesg = f'{name} has {len(rest)} trailing elements (expected extensions only).'
            raise p_exc.BadAsn1Bytes(mesg=mesg, name=name, field='extensions', size=len(rest))

        p_asn1.reqtag(rest[0], p_asn1.TAG_EXPLICIT_3, name, 'extensions')
        exts = tuple(CertExt(oid, crit, valu) for (oid, crit, valu) in p_asn1.unExtensions(rest[0], name))

        try:
            part = PartialCert(issuer=issuer, subject=subject, notbefore=notbefore, notafter=notafter,
                               extensions=exts, sigalg=sigalg, issueruid=issueruid, subjectuid=subjectuid)
        except p_exc.BadArg as e:
            raise p_exc.BadAsn1Bytes(mesg=f'Invalid {name}: {e.get("mesg")}', name=name) from e

        if part.en() != bytes(byts):
            raise p_exc.BadAsn1Bytes(mesg=f'{name} is not canonically encoded.', name=name)

        return part

PartialCertSchema = p_config.getJsSchema({
    'keyattrs': {
        'type': 'array',
        'items': {'type': 'string', 'enum': list(p_keyusage.KEYATTR_NAMES)},
        'description': 'Key attribute names used to derive the key usage.',
    },
    'keyusage': {
        'type': 'array',
        'items': {'type': 'string', 'enum': list(p_keyusage.KEYUSAGE_NAMES)},
        'description': 'Explicit RFC 5280 key usage names. Overrides keyattrs.',
    },
    'signalg': {
        'type': 'string',
        'description': 'Pre-select the signature algorithm by name (for example SHA256WITHECDSA).',
    },
    'issuer': {'type': 'string', 'description': 'The RFC 4514 issuer name.'},
    'subject': {'type': 'string', 'description': 'The RFC 4514 subject name.'},
    'notbefore': {'type': 'string', 'format': 'date-time'},
    'notafter': {'type': 'string', 'format': 'date-time'},
    'issueruid': {'type': 'string', 'pattern': '^([0-9a-fA-F]{2})*$'},
    'subjectuid': {'type': 'string', 'pattern': '^([0-9a-fA-F]{2})*$'},
})

@dataclasses.dataclass(frozen=True)
class PartialCertConf:
    '''
    Options for generating a PartialCert.

    Args:
        keyattrs: TPMA_OBJECT attributes used to derive the key usage. Defaults to none.
        keyusage: A KeyUsage which overrides the one derived from keyattrs.
        keytype: The signing key type. Must be given together with hashalg.
        hashalg: The signing digest. Must be given together with keytype.
        issuer: The issuer name. Defaults to DEFAULT_ISSUER.
        subject: The subject name. Defaults to DEFAULT_SUBJECT.
        notbefore: Start of validity. Defaults to 2000-01-01T00:00:00Z.
        notafter: End of validity. Defaults to 2999-12-31T00:00:00Z.
        issueruid: Optional issuer unique identifier octets.
        subjectuid: Optional subject unique identifier octets.
        extensions: Additional CertExt or cryptography Extension values.
    '''
    keyattrs: p_keyusage.KeyAttr = p_keyusage.KeyAttr(0)
    keyusage: Optional[c_x509.KeyUsage] = None
    keytype: Optional[p_algs.TpmAlg] = None
    hashalg: Optional[p_algs.TpmAlg] = None
    issuer: Union[str, c_x509.Name] = p_const.DEFAULT_ISSUER
    subject: Union[str, c_x509.Name] = p_const.DEFAULT_SUBJECT
    notbefore: datetime.datetime = DEFAULT_NOTBEFORE
    notafter: datetime.datetime = DEFAULT_NOTAFTER
    issueruid: Optional[bytes] = None
    subjectuid: Optional[bytes] = None
    extensions: Tuple = ()

    def __post_init__(self):
        if (self.keytype is None) != (self.hashalg is None):
            raise p_exc.BadArg(mesg='keytype and hashalg must be given together.')

        object.__setattr__(self, 'keyattrs', p_keyusage.KeyAttr(self.keyattrs))
        object.__setattr__(self, 'extensions', tuple(self.extensions))

    @staticmethod
    def fromdict(conf):
        '''
        Create a PartialCertConf from a plain dictionary.

        Args:
            conf (dict): Options which are validated by PartialCertSchema.

        Examples:
            Configure an ECDSA signing key with a custom subject::

                conf = PartialCertConf.fromdict({
                    'keyattrs': ['sign', 'fixedtpm'],
                    'signalg': 'SHA256WITHECDSA',
                    'subject': 'CN=Attested Key',
                })

        Raises:
            SchemaViolation: If the dictionary does not match the schema.

        Returns:
            PartialCertConf: The options.
        '''
        conf = p_config.getJsValidator(PartialCertSchema)(dict(conf))

        kwargs = {}

        keyattrs = conf.get('keyattrs')
        if keyattrs is not None:
            kwargs['keyattrs'] = p_keyusage.parseKeyAttrs(keyattrs)

        keyusage = conf.get('keyusage')
        if keyusage is not None:
            kwargs['keyusage'] = p_keyusage.initKeyUsage(keyusage)

        signalg = conf.get('signalg')
        if signalg is not None:
            kwargs['keytype'], kwargs['hashalg'] = p_algs.parseSigAlgName(signalg)

        for name in ('issuer', 'subject'):
            valu = conf.get(name)
            if valu is not None:
                kwargs[name] = valu

        for name in ('notbefore', 'notafter'):
            valu = conf.get(name)
            if valu is not None:
                try:
                    kwargs[name] = datetime.datetime.fromisoformat(valu)
                except ValueError as e:
                    raise p_exc.BadArg(mesg=f'Invalid {name} time {valu!r}: {e}', name=name) from e

        for name in ('issueruid', 'subjectuid'):
            valu = conf.get(name)
            if valu is not None:
                kwargs[name] = p_common.uhex(valu)

        return PartialCertConf(**kwargs)

def genPartialCert(conf: Optional[PartialCertConf] = None) -> PartialCert:
    '''
    Generate a PartialCert from options.

    Args:
        conf: The options. Defaults to PartialCertConf().

    Notes:
        The key usage extension is always first and always critical.

    Raises:
        NoSuchAlgo: If keytype and hashalg do not name a supported signature algorithm.
        BadArg: If the options do not make a valid partial certificate.

    Returns:
        The partial certificate.
    '''
    if conf is None:
        conf = PartialCertConf()

    keyusage = conf.keyusage
    if keyusage is None:
        keyusage = p_keyusage.getKeyUsage(conf.keyattrs)

    sigalg = None
    if conf.keytype is not None:
        sigalg = p_algs.getSigAlgId(conf.keytype, conf.hashalg)

    exts = [CertExt.fromExtType(keyusage, critical=True)]
    exts.extend(conf.extensions)

    part = PartialCert(
        issuer=conf.issuer,
        subject=conf.subject,
        notbefore=conf.notbefore,
        notafter=conf.notafter,
        extensions=exts,
        sigalg=sigalg,
        issueruid=conf.issueruid,
        subjectuid=conf.subjectuid,
    )

    logger.debug('Generated partial certificate for %s (keyusage=%s sigalg=%s)',
                 part.subject.rfc4514_string(),
                 ','.join(sorted(p_keyusage.getKeyUsageNames(keyusage))),
                 None if sigalg is None else sigalg.name)

    return part
