import datetime

import cryptography.x509 as c_x509

import partcert.exc as p_exc

import partcert.lib.algs as p_algs
import partcert.lib.asn1 as p_asn1
import partcert.lib.const as p_const
import partcert.lib.partial as p_partial
import partcert.lib.keyusage as p_keyusage

import partcert.tests.utils as p_t_utils

TpmAlg = p_algs.TpmAlg
KeyAttr = p_keyusage.KeyAttr

def utc(*args):
    return datetime.datetime(*args, tzinfo=datetime.UTC)

def kuext(*names):
    return p_partial.CertExt.fromExtType(p_keyusage.initKeyUsage(names), critical=True)

class PartialTest(p_t_utils.SynTest):

    def test_lib_partial_defaults(self):

        part = p_partial.genPartialCert()

        self.eq(part.issuer, c_x509.Name.from_rfc4514_string(p_const.DEFAULT_ISSUER))
        self.eq(part.subject, c_x509.Name.from_rfc4514_string(p_const.DEFAULT_SUBJECT))
        self.eq(part.notbefore, utc(2000, 1, 1))
        self.eq(part.notafter, utc(2999, 12, 31))
        self.none(part.sigalg)
        self.none(part.issueruid)
        self.none(part.subjectuid)

        # an empty key usage is still present and critical
        self.eq(part.extensions, (kuext(),))
        self.eq(part.getExt(c_x509.ExtensionOID.KEY_USAGE), kuext())
        self.none(part.getExt('1.2.3.4'))

    def test_lib_partial_gen(self):

        extra = p_partial.CertExt('1.2.3.4', False, b'\x0c\x04hehe')
        bcons = c_x509.Extension(c_x509.ExtensionOID.BASIC_CONSTRAINTS, True,
                                 c_x509.BasicConstraints(ca=False, path_length=None))

        conf = self.getPartialConf(
            keyattrs=KeyAttr.SIGN | KeyAttr.FIXEDTPM,
            keytype=TpmAlg.ECC,
            hashalg=TpmAlg.SHA384,
            subject='CN=Attested Key,O=Vertex',
            extensions=(extra, bcons),
        )
        part = p_partial.genPartialCert(conf)

        self.eq(part.sigalg, p_algs.getSigAlgId(TpmAlg.ECC, TpmAlg.SHA384))
        self.eq(part.subject.rfc4514_string(), 'CN=Attested Key,O=Vertex')
        self.eq(part.notbefore, utc(2020, 1, 1))

        self.len(3, part.extensions)
        self.eq(part.extensions[0], kuext('digitalSignature', 'nonRepudiation'))
        self.eq(part.extensions[1], extra)
        self.eq(part.extensions[2], p_partial.CertExt('2.5.29.19', True, b'\x30\x00'))

        # an explicit key usage overrides the key attributes
        conf = self.getPartialConf(keyusage=p_keyusage.initKeyUsage(['keyCertSign']))
        part = p_partial.genPartialCert(conf)
        self.eq(part.extensions[0], kuext('keyCertSign'))

    def test_lib_partial_badargs(self):

        with self.raises(p_exc.BadArg):
            self.getPartialConf(keytype=TpmAlg.ECC)

        with self.raises(p_exc.BadArg):
            self.getPartialConf(hashalg=TpmAlg.SHA256)

        with self.raises(p_exc.NoSuchAlgo):
            p_partial.genPartialCert(self.getPartialConf(keytype=TpmAlg.ECC, hashalg=TpmAlg.NULL))

        # key usage may not be given twice
        with self.raises(p_exc.BadArg) as cm:
            p_partial.genPartialCert(self.getPartialConf(extensions=(kuext('cRLSign'),)))
        self.eq(cm.exception.get('oid'), '2.5.29.15')

        with self.raises(p_exc.BadArg):
            p_partial.genPartialCert(self.getPartialConf(notbefore=utc(2040, 1, 2)))

        with self.raises(p_exc.BadArg):
            p_partial.genPartialCert(self.getPartialConf(notbefore=utc(1949, 12, 31)))

        with self.raises(p_exc.BadArg):
            p_partial.genPartialCert(self.getPartialConf(subject='newp'))

        with self.raises(p_exc.BadArg):
            p_partial.genPartialCert(self.getPartialConf(subject=10))

        with self.raises(p_exc.BadArg):
            p_partial.genPartialCert(self.getPartialConf(extensions=('newp',)))

        with self.raises(p_exc.BadArg):
            p_partial.genPartialCert(self.getPartialConf(issueruid='0102'))

        with self.raises(p_exc.BadArg):
            p_partial.CertExt('1.2.3.4', False, 'newp')

        # key usage is required
        with self.raises(p_exc.BadArg) as cm:
            p_partial.PartialCert(issuer=p_const.DEFAULT_ISSUER, subject=p_const.DEFAULT_SUBJECT,
                                  notbefore=utc(2020, 1, 1), notafter=utc(2021, 1, 1), extensions=())
        self.eq(cm.exception.get('oid'), '2.5.29.15')

    def test_lib_partial_times(self):

        # naive times are UTC and sub-second precision is dropped
        conf = self.getPartialConf(notbefore=datetime.datetime(2020, 5, 1, 10, 0, 0, 123456))
        part = p_partial.genPartialCert(conf)
        self.eq(part.notbefore, utc(2020, 5, 1, 10, 0, 0))

        tz = datetime.timezone(datetime.timedelta(hours=-5))
        conf = self.getPartialConf(notafter=datetime.datetime(2030, 1, 1, 20, 0, 0, tzinfo=tz))
        part = p_partial.genPartialCert(conf)
        self.eq(part.notafter, utc(2030, 1, 2, 1, 0, 0))
        self.eq(part.notafter.tzinfo, datetime.UTC)

        # the last representable hour west of UTC overflows once converted
        conf = self.getPartialConf(notafter=datetime.datetime(9999, 12, 31, 23, 0, 0, tzinfo=tz))
        with self.raises(p_exc.BadArg) as cm:
            p_partial.genPartialCert(conf)
        self.eq(cm.exception.get('name'), 'notafter')

        # the window may be a single instant
        conf = self.getPartialConf(notbefore=utc(2030, 1, 1), notafter=utc(2030, 1, 1))
        part = p_partial.genPartialCert(conf)
        self.eq(part.notbefore, part.notafter)

    def test_lib_partial_wire(self):

        conf = self.getPartialConf(
            keyattrs=KeyAttr.DECRYPT | KeyAttr.RESTRICTED,
            keytype=TpmAlg.RSA,
            hashalg=TpmAlg.SHA256,
            notafter=utc(2999, 12, 31),
            issueruid=b'\x01\x02\x03',
            subjectuid=b'\xff',
            extensions=(p_partial.CertExt('1.2.3.4', False, b'\x05\x00'),),
        )
        part = p_partial.genPartialCert(conf)
        byts = part.en()

        elems = p_asn1.unseq(byts, 'PartialCert')
        self.eq([e[0] for e in elems], [0x30, 0x30, 0x30, 0x30, 0x81, 0x82, 0xa3])

        self.eq(p_partial.PartialCert.load(byts), part)

        # without the leading algorithm identifier or unique identifiers
        part = p_partial.genPartialCert(self.getPartialConf())
        byts = part.en()

        elems = p_asn1.unseq(byts, 'PartialCert')
        self.eq([e[0] for e in elems], [0x30, 0x30, 0x30, 0xa3])

        retn = p_partial.PartialCert.load(byts)
        self.eq(retn, part)
        self.none(retn.sigalg)

        # only the subject unique identifier
        part = p_partial.genPartialCert(self.getPartialConf(subjectuid=b'\x00\x01'))
        self.eq(p_partial.PartialCert.load(part.en()), part)

    def test_lib_partial_load_bad(self):

        part = p_partial.genPartialCert(self.getPartialConf())
        byts = part.en()
        issuer, validity, subject, exts = p_asn1.unseq(byts, 'PartialCert')

        with self.raises(p_exc.BadAsn1Bytes):
            p_partial.PartialCert.load(byts[:-1])

        with self.raises(p_exc.BadAsn1Bytes):
            p_partial.PartialCert.load(byts + b'\x00')

        with self.raises(p_exc.BadAsn1Bytes) as cm:
            p_partial.PartialCert.load(p_asn1.enseq([issuer, validity, exts]))
        self.eq(cm.exception.get('size'), 2)

        with self.raises(p_exc.BadAsn1Bytes) as cm:
            p_partial.PartialCert.load(p_asn1.enseq([issuer, validity, subject]))
        self.eq(cm.exception.get('field'), 'extensions')

        with self.raises(p_exc.BadAsn1Bytes) as cm:
            p_partial.PartialCert.load(p_asn1.enseq([issuer, validity, subject, b'\x02\x01\x00']))
        self.eq(cm.exception.get('field'), 'extensions')

        with self.raises(p_exc.BadAsn1Bytes):
            p_partial.PartialCert.load(p_asn1.enseq([issuer, validity, subject, exts, exts]))

        # unique identifiers out of order
        uid1 = p_asn1.en(p_asn1.enUniqueId(b'\x01', 1))
        uid2 = p_asn1.en(p_asn1.enUniqueId(b'\x02', 2))
        with self.raises(p_exc.BadAsn1Bytes):
            p_partial.PartialCert.load(p_asn1.enseq([issuer, validity, subject, uid2, uid1, exts]))

        # notbefore after notafter
        badval = p_asn1.en(p_asn1.enValidity(utc(2030, 1, 1), utc(2020, 1, 1)))
        with self.raises(p_exc.BadAsn1Bytes):
            p_partial.PartialCert.load(p_asn1.enseq([issuer, badval, subject, exts]))

        # a 2020 time encoded as GeneralizedTime is not canonical
        gentime = b'\x30\x22\x18\x0f20200101000000Z\x18\x0f20400101000000Z'
        with self.raises(p_exc.BadAsn1Bytes):
            p_partial.PartialCert.load(p_asn1.enseq([issuer, gentime, subject, exts]))

    def test_lib_partial_fromdict(self):

        conf = p_partial.PartialCertConf.fromdict({
            'keyattrs': ['sign', 'fixedtpm'],
            'signalg': 'SHA256WITHECDSA',
            'subject': 'CN=Attested Key',
            'notbefore': '2021-01-01T00:00:00Z',
            'notafter': '2031-01-01T12:00:00+02:00',
            'issueruid': '0102',
        })

        self.eq(conf.keyattrs, KeyAttr.SIGN | KeyAttr.FIXEDTPM)
        self.eq(conf.keytype, TpmAlg.ECC)
        self.eq(conf.hashalg, TpmAlg.SHA256)
        self.eq(conf.issuer, p_const.DEFAULT_ISSUER)
        self.eq(conf.issueruid, b'\x01\x02')
        self.none(conf.subjectuid)

        part = p_partial.genPartialCert(conf)
        self.eq(part.subject.rfc4514_string(), 'CN=Attested Key')
        self.eq(part.notbefore, utc(2021, 1, 1))
        self.eq(part.notafter, utc(2031, 1, 1, 10, 0, 0))
        self.eq(part.sigalg, p_algs.getSigAlgId(TpmAlg.ECC, TpmAlg.SHA256))
        self.eq(part.extensions[0], kuext('digitalSignature', 'nonRepudiation'))

        conf = p_partial.PartialCertConf.fromdict({'keyusage': ['keyEncipherment']})
        part = p_partial.genPartialCert(conf)
        self.eq(part.extensions[0], kuext('keyEncipherment'))

        self.eq(p_partial.PartialCertConf.fromdict({}), p_partial.PartialCertConf())

        with self.raises(p_exc.SchemaViolation):
            p_partial.PartialCertConf.fromdict({'newp': 1})

        with self.raises(p_exc.SchemaViolation):
            p_partial.PartialCertConf.fromdict({'keyattrs': ['newp']})

        with self.raises(p_exc.SchemaViolation):
            p_partial.PartialCertConf.fromdict({'issueruid': 'abc'})

        with self.raises(p_exc.SchemaViolation):
            p_partial.PartialCertConf.fromdict({'notbefore': 'yesterday'})

        with self.raises(p_exc.NoSuchAlgo):
            p_partial.PartialCertConf.fromdict({'signalg': 'MD5WITHRSA'})
