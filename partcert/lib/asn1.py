'''
DER encoding helpers for the certificate structures used by partcert.

These wrap pyasn1 and the RFC 5280 schema from pyasn1-modules. Structures
which the device builds element by element (the partial certificate and the
added-to completion) are handled as sequences of raw DER elements so that each
element can be checked by position and tag.
'''
import datetime
import logging

from typing import List

import regex

import pyasn1.error as a_error
import pyasn1.type.tag as a_tag
import pyasn1.type.univ as a_univ
import pyasn1.type.useful as a_useful
import pyasn1.codec.der.decoder as a_decoder
import pyasn1.codec.der.encoder as a_encoder
import pyasn1_modules.rfc5280 as a_rfc5280

import cryptography.x509 as c_x509

from cryptography.x509.name import _ASN1Type

import partcert.exc as p_exc
import partcert.common as p_common

import partcert.lib.algs as p_algs
import partcert.lib.const as p_const

logger = logging.getLogger(__name__)

# Leading identifier octets of the elements we dispatch on
TAG_INTEGER = 0x02
TAG_SEQUENCE = 0x30
TAG_EXPLICIT_0 = 0xa0
TAG_IMPLICIT_1 = 0x81
TAG_IMPLICIT_2 = 0x82
TAG_EXPLICIT_3 = 0xa3

utctime_re = regex.compile(r'^(\d{2})(\d{2})(\d{2})(\d{2})(\d{2})(\d{2})Z$')
gentime_re = regex.compile(r'^(\d{4})(\d{2})(\d{2})(\d{2})(\d{2})(\d{2})Z$')

# Directory string types which may be rebuilt as cryptography NameAttributes
_nametypes = {
    0x0c: _ASN1Type.UTF8String,
    0x12: _ASN1Type.NumericString,
    0x13: _ASN1Type.PrintableString,
    0x14: _ASN1Type.T61String,
    0x16: _ASN1Type.IA5String,
    0x1a: _ASN1Type.VisibleString,
    0x1c: _ASN1Type.UniversalString,
    0x1e: _ASN1Type.BMPString,
}

class AnySeq(a_univ.SequenceOf):
    '''
    A SEQUENCE whose elements are kept as raw DER.
    '''
    componentType = a_univ.Any()

def _errinfo(name, field=None):
    info = {'name': name}
    if field is not None:
        info['field'] = field
    return info

def en(item, name=None) -> bytes:
    '''
    DER encode a pyasn1 item.

    Raises:
        BadAsn1Item: If the item is incomplete or violates its schema.
    '''
    if name is None:
        name = type(item).__name__

    try:
        return a_encoder.encode(item)
    except a_error.PyAsn1Error as e:
        raise p_exc.BadAsn1Item(mesg=f'Failed to DER encode {name}: {p_common.trimText(str(e))}', name=name) from e

def un(byts, spec, name, field=None):
    '''
    Decode exactly one DER item using the given pyasn1 schema.

    Args:
        byts (bytes): The DER bytes.
        spec: A pyasn1 schema instance.
        name (str): The structure name used in errors.
        field (str): The field name used in errors.

    Raises:
        BadAsn1Bytes: If the bytes are truncated, do not match the schema, or have trailing data.

    Returns:
        The decoded pyasn1 item.
    '''
    try:
        item, rest = a_decoder.decode(bytes(byts), asn1Spec=spec)
    except a_error.PyAsn1Error as e:
        where = name if field is None else f'{name}.{field}'
        raise p_exc.BadAsn1Bytes(mesg=f'Invalid DER for {where}: {p_common.trimText(str(e))}', **_errinfo(name, field)) from e

    if rest:
        where = name if field is None else f'{name}.{field}'
        raise p_exc.BadAsn1Bytes(mesg=f'{len(rest)} trailing bytes after {where}', size=len(rest),
                                 **_errinfo(name, field))

    return item

def enseq(elems: List[bytes], name='SEQUENCE') -> bytes:
    '''
    Encode a SEQUENCE from a list of already DER encoded elements.
    '''
    seq = AnySeq()
    seq.clear()
    seq.extend([a_univ.Any(byts) for byts in elems])
    return en(seq, name=name)

def unseq(byts, name) -> List[bytes]:
    '''
    Split a DER SEQUENCE into the raw DER of each element.
    '''
    seq = un(byts, AnySeq(), name)
    return [bytes(elem) for elem in seq]

def reqtag(elem: bytes, tagbyte: int, name, field):
    '''
    Require a raw DER element to start with the given identifier octet.
    '''
    if not elem or elem[0] != tagbyte:
        valu = elem[0] if elem else None
        mesg = f'Unexpected tag for {name}.{field}: {valu!r} (expected 0x{tagbyte:02x})'
        raise p_exc.BadAsn1Bytes(mesg=mesg, name=name, field=field, tag=valu)

def enTime(dt: datetime.datetime) -> a_rfc5280.Time:
    '''
    Encode a UTC datetime as an RFC 5280 Time choice.

    Notes:
        Years 1950 through 2049 use UTCTime and all others use GeneralizedTime.
    '''
    item = a_rfc5280.Time()
    if p_const.UTCTIME_MINYEAR <= dt.year <= p_const.UTCTIME_MAXYEAR:
        item['utcTime'] = a_useful.UTCTime(dt.strftime('%y%m%d%H%M%SZ'))
    else:
        item['generalTime'] = a_useful.GeneralizedTime(dt.strftime('%Y%m%d%H%M%SZ'))
    return item

def unTime(item, name, field) -> datetime.datetime:
    '''
    Decode an RFC 5280 Time choice into an aware UTC datetime.
    '''
    text = str(item.getComponent())

    if item.getName() == 'utcTime':
        match = utctime_re.match(text)
        if match is not None:
            yy = int(match.group(1))
            year = 1900 + yy if yy >= 50 else 2000 + yy
    else:
        match = gentime_re.match(text)
        if match is not None:
            year = int(match.group(1))

    if match is None:
        raise p_exc.BadAsn1Bytes(mesg=f'Invalid time value for {name}.{field}: {text!r}', name=name, field=field)

    try:
        parts = [int(p) for p in match.groups()[1:]]
        return datetime.datetime(year, *parts, tzinfo=datetime.UTC)
    except ValueError as e:
        raise p_exc.BadAsn1Bytes(mesg=f'Invalid time value for {name}.{field}: {e}', name=name, field=field) from e

def enValidity(notbefore, notafter) -> a_rfc5280.Validity:
    item = a_rfc5280.Validity()
    item['notBefore'] = enTime(notbefore)
    item['notAfter'] = enTime(notafter)
    return item

def unValidity(byts, name):
    item = un(byts, a_rfc5280.Validity(), name, field='validity')
    notbefore = unTime(item['notBefore'], name, 'notBefore')
    notafter = unTime(item['notAfter'], name, 'notAfter')
    return notbefore, notafter

def enAlgId(algid: p_algs.AlgId) -> a_rfc5280.AlgorithmIdentifier:
    item = a_rfc5280.AlgorithmIdentifier()
    item['algorithm'] = a_univ.ObjectIdentifier(algid.oid)
    if algid.params is not None:
        item['parameters'] = a_univ.Any(algid.params)
    return item

def unAlgId(byts, name, field='signature') -> p_algs.AlgId:
    item = un(byts, a_rfc5280.AlgorithmIdentifier(), name, field=field)

    params = None
    if item['parameters'].isValue:
        params = bytes(item['parameters'])

    return p_algs.AlgId(oid=str(item['algorithm']), params=params)

def enName(name: c_x509.Name) -> a_rfc5280.Name:
    return un(name.public_bytes(), a_rfc5280.Name(), 'Name')

def unName(byts, name, field) -> c_x509.Name:
    '''
    Decode a DER Name into a cryptography Name.

    Notes:
        The rebuilt Name is required to re-encode to the exact input bytes.

    Raises:
        BadAsn1Bytes: If the name is malformed or uses attribute value types which can not be rebuilt.
    '''
    item = un(byts, a_rfc5280.Name(), name, field=field)

    rdns = []
    try:
        for rdn in item['rdnSequence']:
            attrs = [_unNameAttr(atav, name, field) for atav in rdn]
            rdns.append(c_x509.RelativeDistinguishedName(attrs))
        retn = c_x509.Name(rdns)
    except ValueError as e:
        raise p_exc.BadAsn1Bytes(mesg=f'Invalid name for {name}.{field}: {e}', name=name, field=field) from e

    if retn.public_bytes() != bytes(byts):
        mesg = f'Name for {name}.{field} does not re-encode canonically.'
        raise p_exc.BadAsn1Bytes(mesg=mesg, name=name, field=field)

    return retn

def _unNameAttr(atav, name, field):

    oid = c_x509.ObjectIdentifier(str(atav['type']))
    raw = bytes(atav['value'])

    nametype = _nametypes.get(raw[0]) if raw else None
    if nametype is None:
        mesg = f'Unsupported attribute value type in {name}.{field} for {oid.dotted_string}'
        raise p_exc.BadAsn1Bytes(mesg=mesg, name=name, field=field, oid=oid.dotted_string)

    try:
        valu, rest = a_decoder.decode(raw)
        text = str(valu)
    except (a_error.PyAsn1Error, UnicodeError) as e:
        raise p_exc.BadAsn1Bytes(mesg=f'Invalid attribute value in {name}.{field}: {e}', name=name,
                                 field=field, oid=oid.dotted_string) from e

    return c_x509.NameAttribute(oid, text, _type=nametype)

def enUniqueId(byts: bytes, tagnum: int):
    '''
    Encode octets as a context tagged IMPLICIT UniqueIdentifier BIT STRING.
    '''
    spec = a_rfc5280.UniqueIdentifier().subtype(
        implicitTag=a_tag.Tag(a_tag.tagClassContext, a_tag.tagFormatSimple, tagnum))
    return spec.clone(a_univ.BitString.fromOctetString(byts, internalFormat=True))

def unUniqueId(byts, tagnum, name, field) -> bytes:
    spec = a_rfc5280.UniqueIdentifier().subtype(
        implicitTag=a_tag.Tag(a_tag.tagClassContext, a_tag.tagFormatSimple, tagnum))
    item = un(byts, spec, name, field=field)
    if len(item) % 8:
        mesg = f'{name}.{field} is not a whole number of octets ({len(item)} bits)'
        raise p_exc.BadAsn1Bytes(mesg=mesg, name=name, field=field)
    return item.asOctets()

def enExtensions(exts) -> a_rfc5280.Extensions:
    '''
    Encode a sequence of CertExt values as an RFC 5280 Extensions item.
    '''
    item = a_rfc5280.Extensions().subtype(
        explicitTag=a_tag.Tag(a_tag.tagClassContext, a_tag.tagFormatSimple, 3))

    for ext in exts:
        extn = a_rfc5280.Extension()
        extn['extnID'] = a_univ.ObjectIdentifier(ext.oid)
        extn['critical'] = ext.critical
        extn['extnValue'] = a_univ.OctetString(ext.value)
        item.append(extn)

    return item

def unExtensions(byts, name):
    '''
    Decode a [3] EXPLICIT Extensions element into (oid, critical, value) tuples.
    '''
    spec = a_rfc5280.Extensions().subtype(
        explicitTag=a_tag.Tag(a_tag.tagClassContext, a_tag.tagFormatSimple, 3))
    item = un(byts, spec, name, field='extensions')
    return [(str(extn['extnID']), bool(extn['critical']), bytes(extn['extnValue'])) for extn in item]

def _versionSpec():
    return a_rfc5280.Version().subtype(
        explicitTag=a_tag.Tag(a_tag.tagClassContext, a_tag.tagFormatSimple, 0))

def enVersion(vers: int):
    '''
    Encode a certificate version as a [0] EXPLICIT INTEGER.
    '''
    return _versionSpec().clone(vers)

def unVersion(byts, name) -> int:
    return int(un(byts, _versionSpec(), name, field='version'))

def enSerial(serial: int) -> a_univ.Integer:
    return a_rfc5280.CertificateSerialNumber(serial)

def unSerial(byts, name) -> int:
    return int(un(byts, a_rfc5280.CertificateSerialNumber(), name, field='serialNumber'))

def unSpki(byts, name) -> a_rfc5280.SubjectPublicKeyInfo:
    '''
    Decode DER SubjectPublicKeyInfo bytes into the RFC 5280 schema item.
    '''
    return un(byts, a_rfc5280.SubjectPublicKeyInfo(), name, field='subjectPublicKeyInfo')
