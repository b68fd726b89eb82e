from decimal import Decimal
from hashlib import sha256
from pyln.bolt11 import (
    Invoice, InvoiceBuilder, MAINNET, PrivateKey, REGTEST, SIGNET, TESTNET, decode, decode_invoice,
    encode_invoice, sign_invoice,
)
from pyln.bolt11.bech32 import CHARSET, Encoding, bech32_decode, bech32_encode
from pyln.bolt11.errors import (
    BadCharset, BadChecksum, InvariantViolation, MalformedAmount, SignatureInvalid, TruncatedTag,
    UnknownNetwork,
)
from pyln.bolt11.primitives import PublicKey
from pyln.bolt11.tags import UnknownTag
import pytest


PRIVKEY = 'e126f68f7eafcc8b74f54d269fe206be715000f94dac067d1c04a8ca3b2db734'
PUBKEY = '03e7156ae33b0a208d0744199163177e909e80176e55d97a2f221ede0f934dd9ad'
PAYMENT_HASH = '0001020304050607080900010203040506070809000102030405060708090102'
TIMESTAMP = 1496314658
CAKE = ('One piece of chocolate cake, one icecream cone, one pickle, one slice of swiss cheese, '
        'one slice of salami, one lollypop, one piece of cherry pie, one sausage, one cupcake, '
        'and one slice of watermelon')

COFFEE = ('lnbc2500u1pvjluezpp5qqqsyqcyq5rqwzqfqqqsyqcyq5rqwzqfqqqsyqcyq5rqwzqf'
          'qypqdq5xysxxatsyp3k7enxv4jsxqzpuaztrnwngzn3kdzw5hydlzf03qdgm2hdq27cq'
          'v3agm2awhz5se903vruatfhq77w3ls4evs3ch9zw97j25emudupq63nyw24cg27h2rsp'
          'fj9srp')


def test_decode():
    i = 'lnbcrt1u1p0zyt04pp5wcnjhxu4k98td0kw8ng9zqrd3246cc7r559a063tk5mp9v9fxf9sdpqw3jhxazlwpshjhmjda6hgetzdahhxapjxqyjw5qcqp9sp5asxa9pwxt6yuse5egtcna8gezazr657chz72qfzztsthxwnwj0yqr9yqdwjkyvjm7apxnssu4qgwhfkd67ghs6n6k48v6uqczgt88p6tky96qqqdcqqqqgqqyqqqqlgqqqqqzsqqcpc9njea0cche7cgemu9c6lyv55hxvjem9f2jgle799d3kt9kw7rxgqqphqqqqzqqqsqqqraqqqqqq2qqrq9qy9qsqfm47uq6ny374m22dxw7p6j8c0khj4tspjcj78l33vf6qv8grhknsmw6slxxucpvxv5s9464qfng8324sagn8g8ng3uuh4d2vdpnmsdgqyqhn4k'
    inv, pubkey = decode_invoice(i)

    assert(pubkey.hex() == '032cf15d1ad9c4a08d26eab1918f732d8ef8fdc6abb9640bf3db174372c491304e')
    assert(inv.payee == pubkey)
    assert(inv.hexpaymenthash == '76272b9b95b14eb6bece3cd051006d8aabac63c3a50bd7ea2bb53612b0a9324b')
    assert(inv.network == REGTEST)
    assert(inv.min_final_cltv_expiry == 5)
    assert(inv.amount_msat == 100000)
    assert(inv.amount_btc == Decimal('0.000001'))
    assert(inv.features.bits == 0x28200)
    assert(inv.description == 'test_pay_routeboost2')
    assert(inv.expiry == 604800)
    assert(len(inv.route_hints) == 1)
    assert(len(inv.route_hints[0].hops) == 2)
    assert(inv.is_signed)
    print(inv)


def test_encode():
    inv = (InvoiceBuilder(MAINNET)
           .payment_hash(bytes.fromhex("76272b9b95b14eb6bece3cd051006d8aabac63c3a50bd7ea2bb53612b0a9324b"))
           .amount_btc(Decimal('0.000001'))
           .description('test_pay_routeboost2')
           .expiry(604800)
           .timestamp(1579298293)
           .build())
    privkey = 'c28a9f80738f770d527803a566cf6fc3edf6cea586c4fc4a5223a5ad797e1ac3'
    i = encode_invoice(inv, privkey)
    assert(i == 'lnbc1u1p0zyt04pp5wcnjhxu4k98td0kw8ng9zqrd3246cc7r559a063tk5mp9v9fxf9sdpqw3jhxazlwpshjhmjda6hgetzdahhxapjxqyjw5q0s43wfg4f6yl200hc805kc9u97dp7m6j98fz33uzf4t6kp73trcz8fxkrpass063j2j4quxjr4th2r72lk27tm2aw383zgnl8zpgajsq5kmll8')

    # Same key, same invoice, same string.
    assert(encode_invoice(inv, PrivateKey(privkey)) == i)
    assert(decode(i) == inv)


def check_vector(b11, network=MAINNET):
    """Decode a signed vector, and check it survives being written back out."""
    inv, pubkey = decode_invoice(b11)
    assert(pubkey.hex() == PUBKEY)
    assert(inv.network == network)
    assert(inv.timestamp == TIMESTAMP)
    assert(inv.hexpaymenthash == PAYMENT_HASH)

    again, again_key = decode_invoice(encode_invoice(inv, PRIVKEY))
    assert(again == inv)
    assert(again_key == pubkey)
    return inv


def test_coffee():
    inv = check_vector(COFFEE)
    assert(inv.amount_msat == 250000000)
    assert(inv.description == '1 cup coffee')
    assert(inv.expiry == 60)
    assert(inv.expires_at == TIMESTAMP + 60)


def test_description_hash():
    inv = check_vector('lnbc20m1pvjluezpp5qqqsyqcyq5rqwzqfqqqsyqcyq5rqwzqfqqqsyqcyq5rqwzqfqypqhp58yjmdan79s6qqdhdzgynm4zwqd5d7xmw5fk98klysy043l2ahrqscc6gd6ql3jrc5yzme8v4ntcewwz5cnw92tz0pc8qcuufvq7khhr8wpald05e92xw006sq94mg8v2ndf4sefvf9sygkshp5zfem29trqq2yxxz7')
    assert(inv.amount_msat == 2000000000)
    assert(inv.description is None)
    assert(inv.description_hash == sha256(CAKE.encode('utf-8')).digest())


@pytest.mark.parametrize('b11,network,address,type_name', [
    ('lntb20m1pvjluezhp58yjmdan79s6qqdhdzgynm4zwqd5d7xmw5fk98klysy043l2ahrqspp5qqqsyqcyq5rqwzqfqqqsyqcyq5rqwzqfqqqsyqcyq5rqwzqfqypqfpp3x9et2e20v6pu37c5d9vax37wxq72un98kmzzhznpurw9sgl2v0nklu2g4d0keph5t7tj9tcqd8rexnd07ux4uv2cjvcqwaxgj7v4uwn5wmypjd5n69z2xm3xgksg28nwht7f6zspwp3f9t',
     TESTNET, 'mk2QpYatsKicvFVuTAQLBryyccRXMUaGHP', 'P2PKH'),
    ('lnbc20m1pvjluezhp58yjmdan79s6qqdhdzgynm4zwqd5d7xmw5fk98klysy043l2ahrqspp5qqqsyqcyq5rqwzqfqqqsyqcyq5rqwzqfqqqsyqcyq5rqwzqfqypqfppj3a24vwu6r8ejrss3axul8rxldph2q7z9kmrgvr7xlaqm47apw3d48zm203kzcq357a4ls9al2ea73r8jcceyjtya6fu5wzzpe50zrge6ulk4nvjcpxlekvmxl6qcs9j3tz0469gq5g658y',
     MAINNET, '3EktnHQD7RiAE6uzMj2ZifT9YgRrkSgzQX', 'P2SH'),
    ('lnbc20m1pvjluezhp58yjmdan79s6qqdhdzgynm4zwqd5d7xmw5fk98klysy043l2ahrqspp5qqqsyqcyq5rqwzqfqqqsyqcyq5rqwzqfqqqsyqcyq5rqwzqfqypqfppqw508d6qejxtdg4y5r3zarvary0c5xw7kepvrhrm9s57hejg0p662ur5j5cr03890fa7k2pypgttmh4897d3raaq85a293e9jpuqwl0rnfuwzam7yr8e690nd2ypcq9hlkdwdvycqa0qza8',
     MAINNET, 'bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4', 'P2WPKH'),
    ('lnbc20m1pvjluezhp58yjmdan79s6qqdhdzgynm4zwqd5d7xmw5fk98klysy043l2ahrqspp5qqqsyqcyq5rqwzqfqqqsyqcyq5rqwzqfqqqsyqcyq5rqwzqfqypqfp4qrp33g0q5c5txsp9arysrx4k6zdkfs4nce4xj0gdcccefvpysxf3q28j0v3rwgy9pvjnd48ee2pl8xrpxysd5g44td63g6xcjcu003j3qe8878hluqlvl3km8rm92f5stamd3jw763n3hck0ct7p8wwj463cql26ava',
     MAINNET, 'bc1qrp33g0q5c5txsp9arysrx4k6zdkfs4nce4xj0gdcccefvpysxf3qccfmv3', 'P2WSH'),
])
def test_fallbacks(b11, network, address, type_name):
    inv = check_vector(b11, network)
    assert(len(inv.fallbacks) == 1)
    assert(inv.fallbacks[0].address == address)
    assert(inv.fallbacks[0].type_name == type_name)
    assert(inv.description_hash == sha256(CAKE.encode('utf-8')).digest())


def test_route_hints():
    inv = check_vector('lnbc20m1pvjluezpp5qqqsyqcyq5rqwzqfqqqsyqcyq5rqwzqfqqqsyqcyq5rqwzqfqypqhp58yjmdan79s6qqdhdzgynm4zwqd5d7xmw5fk98klysy043l2ahrqsfpp3qjmp7lwpagxun9pygexvgpjdc4jdj85fr9yq20q82gphp2nflc7jtzrcazrra7wwgzxqc8u7754cdlpfrmccae92qgzqvzq2ps8pqqqqqqpqqqqq9qqqvpeuqafqxu92d8lr6fvg0r5gv0heeeqgcrqlnm6jhphu9y00rrhy4grqszsvpcgpy9qqqqqqgqqqqq7qqzqj9n4evl6mr5aj9f58zp6fyjzup6ywn3x6sk8akg5v4tgn2q8g4fhx05wf6juaxu9760yp46454gpg5mtzgerlzezqcqvjnhjh8z3g2qqdhhwkj')
    assert(str(inv.fallbacks[0]) == '1RustyRX2oai4EYYDpQGWvEL62BBGqN9T')

    assert(len(inv.route_hints) == 1)
    first, second = inv.route_hints[0].hops
    assert(first.node_id.hex() == '029e03a901b85534ff1e92c43c74431f7ce72046060fcf7a95c37e148f78c77255')
    assert(str(first.scid) == '66051x263430x1800')
    assert((first.fee_base_msat, first.fee_proportional_millionths, first.cltv_expiry_delta) == (1, 20, 3))
    assert(second.node_id.hex() == '039e03a901b85534ff1e92c43c74431f7ce72046060fcf7a95c37e148f78c77255')
    assert(str(second.scid) == '197637x395016x2314')
    assert((second.fee_base_msat, second.fee_proportional_millionths, second.cltv_expiry_delta) == (2, 30, 4))


def test_features():
    inv = check_vector('lnbc25m1pvjluezpp5qqqsyqcyq5rqwzqfqqqsyqcyq5rqwzqfqqqsyqcyq5rqwzqfqypqdq5vdhkven9v5sxyetpdees9qzsze992adudgku8p05pstl6zh7av6rx2f297pv89gu5q93a0hf3g7lynl3xq56t23dpvah6u7y9qey9lccrdml3gaqwc6nxsl5ktzm464sq73t7cl')
    assert(inv.amount_msat == 25 * 10**11 // 1000)
    assert(inv.description == 'coffee beans')
    assert(inv.features.bits == 0x202)
    assert(inv.features.has_feature(1) and inv.features.has_feature(9))

    # Feature bits are opaque here, deciding what is required is up to the caller.
    inv = check_vector('lnbc25m1pvjluezpp5qqqsyqcyq5rqwzqfqqqsyqcyq5rqwzqfqqqsyqcyq5rqwzqfqypqdq5vdhkven9v5sxyetpdees9q4pqqqqqqqqqqqqqqqqqqszk3ed62snp73037h4py4gry05eltlp0uezm2w9ajnerhmxzhzhsu40g9mgyx5v3ad4aqwkmvyftzk4k9zenz90mhjcy9hcevc7r3lx2sphzfxz7')
    assert(inv.features.has_feature(100))


def test_whole_bitcoin():
    b11 = 'lnbcrt71p0g4u8upp5xn4k45tsp05akmn65s5k2063d5fyadhjse9770xz5sk7u4x6vcmqdqqcqzynxqrrssx94cf4p727jamncsvcd8m99n88k423ruzq4dxwevfatpp5gx2mksj2swshjlx4pe3j5w9yed5xjktrktzd3nc2a04kq8yu84l7twhwgpxjn3pw'
    inv = decode(b11)
    assert(inv.network == REGTEST)
    assert(inv.amount_msat == 7 * 10**8 * 1000)
    assert(inv.amount_btc == Decimal(7))
    assert(inv.description == '')
    assert(inv.expiry == 3600)

    # Re-signed with another key, the amount keeps its short form.
    assert(encode_invoice(inv, PRIVKEY).startswith('lnbcrt71'))


def test_uri_and_case():
    inv = decode(COFFEE)
    assert(decode('lightning:' + COFFEE) == inv)
    assert(decode('LIGHTNING:' + COFFEE.upper()) == inv)


def test_networks():
    for network in (MAINNET, TESTNET, SIGNET, REGTEST):
        inv = (InvoiceBuilder(network).timestamp(TIMESTAMP)
               .payment_hash(bytes.fromhex(PAYMENT_HASH))
               .description('net')
               .build())
        b11 = encode_invoice(inv, PRIVKEY)
        assert(b11.startswith('ln' + network.prefix + '1'))
        assert(decode(b11).network == network)


def test_unknown_fields_roundtrip():
    inv = (InvoiceBuilder(TESTNET).timestamp(TIMESTAMP)
           .payment_hash(bytes.fromhex(PAYMENT_HASH))
           .tag(UnknownTag('m', bytes([1, 2, 3, 4, 5, 6, 7, 31])))
           .description('future')
           .tag(UnknownTag('v', bytes([])))
           .build())
    b11 = encode_invoice(inv, PRIVKEY)
    decoded = decode(b11)
    assert(decoded == inv)
    assert(decoded.unknown_tags == [UnknownTag('m', bytes([1, 2, 3, 4, 5, 6, 7, 31])), UnknownTag('v', b'')])
    assert(encode_invoice(decoded, PRIVKEY) == b11)


def test_skipped_fields_roundtrip():
    skipped = [UnknownTag('p', bytes(10)), UnknownTag('f', bytes([19, 0, 0])), UnknownTag('n', bytes(52))]
    b = (InvoiceBuilder(TESTNET).timestamp(TIMESTAMP)
         .payment_hash(bytes.fromhex(PAYMENT_HASH))
         .description('skipped'))
    for tag in skipped:
        b = b.tag(tag)
    inv = b.build()
    decoded = decode(encode_invoice(inv, PRIVKEY))
    assert(decoded == inv)
    assert(decoded.unknown_tags == skipped)


def test_encode_rejects_bad_field_letter():
    inv = Invoice(network=TESTNET, timestamp=TIMESTAMP,
                  tags=InvoiceBuilder(TESTNET).payment_hash(bytes.fromhex(PAYMENT_HASH))
                  .description('x').tags + (UnknownTag('b', bytes([1])),))
    with pytest.raises(InvariantViolation):
        encode_invoice(inv, PRIVKEY)


def test_sign_invoice():
    inv = InvoiceBuilder().timestamp(TIMESTAMP).payment_hash(bytes(32)).description('x').build()
    signed = sign_invoice(inv, bytes.fromhex(PRIVKEY))
    assert(len(signed.signature) == 65)
    assert(signed.payee.hex() == PUBKEY)
    assert(signed == inv)
    assert(not inv.is_signed)


def test_payee_must_be_signer():
    key = PrivateKey(PRIVKEY)
    inv = (InvoiceBuilder().timestamp(TIMESTAMP).payment_hash(bytes(32)).description('x')
           .payee(key.public_key()).build())
    b11 = encode_invoice(inv, key)
    assert(decode(b11).payee_node == key.public_key().to_bytes())

    other = PrivateKey(bytes([1] * 32))
    with pytest.raises(InvariantViolation) as e:
        encode_invoice(inv, other)
    assert(e.value.tag == 'n')


def test_encode_validates():
    inv = Invoice(network=MAINNET, timestamp=TIMESTAMP, tags=())
    with pytest.raises(InvariantViolation):
        encode_invoice(inv, PRIVKEY)


def test_custom_verifier():
    seen = []

    def verifier(digest, signature, recid):
        seen.append((digest, signature, recid))
        return PublicKey(bytes.fromhex(PUBKEY))

    inv, pubkey = decode_invoice(COFFEE, verifier)
    assert(pubkey.hex() == PUBKEY)
    assert(len(seen) == 1)
    assert(len(seen[0][0]) == 32 and len(seen[0][1]) == 64)


def tamper(b11, pos):
    c = b11[pos]
    return b11[:pos] + CHARSET[(CHARSET.find(c) + 1) % 32] + b11[pos + 1:]


def test_bad_checksum():
    with pytest.raises(BadChecksum):
        decode(tamper(COFFEE, 20))
    with pytest.raises(BadChecksum):
        decode(tamper(COFFEE, len(COFFEE) - 1))


@pytest.mark.parametrize('shift', [1, 7, 16, 31])
def test_any_substitution_breaks_checksum(shift):
    for pos in range(COFFEE.rfind('1') + 1, len(COFFEE)):
        c = CHARSET[(CHARSET.index(COFFEE[pos]) + shift) % 32]
        with pytest.raises(BadChecksum):
            decode(COFFEE[:pos] + c + COFFEE[pos + 1:])


def test_bad_charset():
    with pytest.raises(BadCharset):
        decode(COFFEE[:20] + COFFEE[20].upper() + COFFEE[21:])
    with pytest.raises(BadCharset):
        decode(COFFEE.replace('1', ' ', 1))


def resign(hrp, data):
    """Re-checksum a string whose data part we modified."""
    return bech32_encode(hrp, data)


def test_unknown_network():
    hrp, data, _ = bech32_decode(COFFEE)
    with pytest.raises(UnknownNetwork):
        decode(resign('lnxx2500u', data))
    with pytest.raises(UnknownNetwork):
        decode(resign('bc2500u', data))
    with pytest.raises(UnknownNetwork):
        decode(resign('ln2500u', data))


def test_bad_amount():
    hrp, data, _ = bech32_decode(COFFEE)
    with pytest.raises(MalformedAmount):
        decode(resign('lnbc2500x', data))
    # A tenth of a millisatoshi
    with pytest.raises(MalformedAmount):
        decode(resign('lnbc1p', data))


def test_bech32m_rejected():
    hrp, data, _ = bech32_decode(COFFEE)
    with pytest.raises(BadChecksum):
        decode(bech32_encode(hrp, data, Encoding.BECH32M))


def test_too_short():
    hrp, data, _ = bech32_decode(COFFEE)
    with pytest.raises(TruncatedTag):
        decode(resign(hrp, data[:7 + 100]))


def test_signature_mismatch():
    # Changing the amount invalidates the signature: we recover some other
    # key, which no longer matches a `n` field.
    key = PrivateKey(PRIVKEY)
    inv = (InvoiceBuilder().timestamp(TIMESTAMP).payment_hash(bytes(32)).description('x')
           .payee(key.public_key()).amount_msat(1000).build())
    hrp, data, _ = bech32_decode(encode_invoice(inv, key))
    assert(hrp == 'lnbc10n')
    with pytest.raises(SignatureInvalid) as e:
        decode(resign('lnbc20n', data))
    assert(e.value.tag == 'n')

    # Without `n` we simply recover a different payee.
    inv = inv.replace(tags=inv.tags[:-1])
    hrp, data, _ = bech32_decode(encode_invoice(inv, key))
    other = decode_invoice(resign('lnbc20n', data))[1]
    assert(other != key.public_key())
