"""
Segment catalog for CARGO-IMP FWB and FHL messages.

The catalog is a set of immutable, version-keyed tables: each segment code maps
to its display name, maximum length, canonical order, the message versions in
which it is legal and the descriptors of the fields it carries.
"""
from pydantic import BaseModel, ConfigDict
from typing import Dict, List, Literal, Optional, Tuple

MessageType = Literal["FWB", "FHL"]

FWB_VERSIONS = ("FWB/9", "FWB/16", "FWB/17")
FHL_VERSIONS = ("FHL/2", "FHL/4")
_ALL_FWB = FWB_VERSIONS
_MODERN_FWB = ("FWB/16", "FWB/17")


class FieldSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    max_length: int
    required: bool = False
    type: Literal["string", "code", "number", "date"] = "string"
    allowed_values: Optional[Tuple[str, ...]] = None


class SegmentSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    name: str
    required: bool
    max_length: int
    order: int
    versions: Tuple[str, ...]
    fields: Tuple[FieldSpec, ...] = ()

    def field(self, name: str) -> Optional[FieldSpec]:
        return next((f for f in self.fields if f.name == name), None)


def _f(name, max_length, required=False, type="string", allowed_values=None):
    return FieldSpec(
        name=name,
        max_length=max_length,
        required=required,
        type=type,
        allowed_values=allowed_values,
    )


_PARTY_FIELDS = (
    _f("name", 35, True),
    _f("address", 35, True),
    _f("city", 17, True),
    _f("country", 2, True, "code"),
    _f("postalCode", 9),
    _f("phone", 25),
)

_FWB_TABLE: List[SegmentSpec] = [
    SegmentSpec(code="FWB", name="Message Header", required=True, max_length=200, order=1,
                versions=_ALL_FWB, fields=(_f("version", 7, True),)),
    SegmentSpec(code="AWB", name="Air Waybill Number", required=True, max_length=50, order=2,
                versions=_ALL_FWB,
                fields=(
                    _f("awbNumber", 11, True),
                    _f("origin", 3, True, "code"),
                    _f("destination", 3, True, "code"),
                    _f("pieces", 5, True, "number"),
                    _f("weight", 10, True, "number"),
                )),
    SegmentSpec(code="FLT", name="Flight", required=False, max_length=80, order=3,
                versions=_ALL_FWB,
                fields=(
                    _f("flight1", 10),
                    _f("date1", 2, type="date"),
                    _f("flight2", 10),
                    _f("date2", 2, type="date"),
                )),
    SegmentSpec(code="RTG", name="Routing", required=True, max_length=100, order=4,
                versions=_ALL_FWB,
                fields=(_f("segment1", 6, True), _f("segment2", 6), _f("segment3", 6))),
    SegmentSpec(code="SHP", name="Shipper", required=True, max_length=200, order=5,
                versions=_ALL_FWB, fields=_PARTY_FIELDS),
    SegmentSpec(code="CNE", name="Consignee", required=True, max_length=200, order=6,
                versions=_ALL_FWB,
                fields=(
                    _f("name", 35, True),
                    _f("address", 35, True),
                    _f("city", 17, True),
                    _f("state", 2, type="code"),
                    _f("country", 2, True, "code"),
                    _f("postalCode", 9, True),
                    _f("phone", 25),
                )),
    SegmentSpec(code="AGT", name="Agent", required=True, max_length=100, order=7,
                versions=_ALL_FWB,
                fields=(
                    _f("iataCode", 7, True),
                    _f("cassCode", 4),
                    _f("name", 35, True),
                    _f("city", 17, True),
                )),
    SegmentSpec(code="SSR", name="Special Service Request", required=False, max_length=200, order=8,
                versions=_ALL_FWB,
                fields=(_f("line1", 65), _f("line2", 65), _f("line3", 65))),
    SegmentSpec(code="ACC", name="Accounting Information", required=False, max_length=50, order=9,
                versions=_ALL_FWB, fields=(_f("accountingInfo", 34),)),
    SegmentSpec(code="CVD", name="Charge Declarations", required=True, max_length=80, order=10,
                versions=_ALL_FWB,
                fields=(
                    _f("currency", 3, True, "code"),
                    _f("wtOt", 2, True, "code", ("PP", "CC", "PC", "CP")),
                    _f("declaredCarriage", 15, True),
                    _f("declaredCustoms", 15, True),
                    _f("declaredInsurance", 15, True),
                )),
    SegmentSpec(code="RTD", name="Rate Description", required=True, max_length=300, order=11,
                versions=_ALL_FWB,
                fields=(
                    _f("lineNumber", 2, True, "number"),
                    _f("pieces", 5, True, "number"),
                    _f("weight", 10, True, "number"),
                    _f("rateClass", 2, True, "code"),
                    _f("commodity", 4),
                    _f("chargeableWeight", 10, type="number"),
                    _f("rate", 10, type="number"),
                    _f("total", 15, type="number"),
                )),
    SegmentSpec(code="NG", name="Nature of Goods", required=True, max_length=30, order=12,
                versions=_ALL_FWB, fields=(_f("description", 20, True),)),
    SegmentSpec(code="NH", name="Harmonized Code", required=False, max_length=200, order=13,
                versions=_MODERN_FWB, fields=(_f("codes", 15),)),
    SegmentSpec(code="NV", name="Volume", required=False, max_length=20, order=14,
                versions=_MODERN_FWB, fields=(_f("volume", 15, type="number"),)),
    SegmentSpec(code="NS", name="SLAC", required=False, max_length=15, order=15,
                versions=_MODERN_FWB, fields=(_f("pieces", 10, type="number"),)),
    SegmentSpec(code="OTH", name="Other Charges", required=False, max_length=150, order=16,
                versions=_ALL_FWB,
                fields=(
                    _f("prepaidOrCollect", 1, True, "code", ("P", "C")),
                    _f("chargeCode", 3, True, "code"),
                    _f("amount", 15, True, "number"),
                )),
    SegmentSpec(code="PPD", name="Prepaid Charges", required=False, max_length=100, order=17,
                versions=_ALL_FWB,
                fields=(
                    _f("weightCharge", 15, type="number"),
                    _f("dueAgent", 15, type="number"),
                    _f("dueCarrier", 15, type="number"),
                    _f("total", 15, True, "number"),
                )),
    SegmentSpec(code="COL", name="Collect Charges", required=False, max_length=100, order=18,
                versions=_ALL_FWB,
                fields=(
                    _f("weightCharge", 15, type="number"),
                    _f("dueAgent", 15, type="number"),
                    _f("dueCarrier", 15, type="number"),
                    _f("total", 15, True, "number"),
                )),
    SegmentSpec(code="CER", name="Certification", required=False, max_length=30, order=19,
                versions=_ALL_FWB, fields=(_f("signature", 20),)),
    SegmentSpec(code="ISU", name="Issue", required=True, max_length=60, order=20,
                versions=_ALL_FWB,
                fields=(
                    _f("date", 7, True, "date"),
                    _f("place", 17, True),
                    _f("signature", 20),
                )),
    SegmentSpec(code="REF", name="Reference", required=True, max_length=50, order=21,
                versions=_ALL_FWB, fields=(_f("agentRef", 30, True),)),
    SegmentSpec(code="SPH", name="Special Handling", required=True, max_length=50, order=22,
                versions=_ALL_FWB, fields=(_f("codes", 40, True),)),
    SegmentSpec(code="OCI", name="Other Customs Information", required=False, max_length=200, order=23,
                versions=_ALL_FWB,
                fields=(
                    _f("countryCode", 2, True, "code"),
                    _f("party", 3, True, "code", ("CNE", "SHP", "AGT")),
                    _f("type", 2, True, "code"),
                    _f("value", 35, True),
                )),
    SegmentSpec(code="NFY", name="Notify", required=False, max_length=200, order=24,
                versions=_MODERN_FWB,
                fields=(
                    _f("name", 35),
                    _f("address", 35),
                    _f("city", 17),
                    _f("country", 2, type="code"),
                    _f("phone", 25),
                )),
    SegmentSpec(code="FTR", name="Footer", required=True, max_length=100, order=25,
                versions=_ALL_FWB),
]

_FHL_TABLE: List[SegmentSpec] = [
    SegmentSpec(code="FHL", name="Message Header", required=True, max_length=200, order=1,
                versions=FHL_VERSIONS, fields=(_f("version", 7, True),)),
    SegmentSpec(code="MBI", name="Master Bill Information", required=True, max_length=60, order=2,
                versions=FHL_VERSIONS,
                fields=(
                    _f("awbNumber", 11, True),
                    _f("origin", 3, True, "code"),
                    _f("destination", 3, True, "code"),
                    _f("totalPieces", 5, True, "number"),
                    _f("totalWeight", 10, True, "number"),
                )),
    SegmentSpec(code="HBS", name="House Bill Summary", required=True, max_length=80, order=3,
                versions=FHL_VERSIONS,
                fields=(
                    _f("hawbNumber", 20, True),
                    _f("origin", 3, True, "code"),
                    _f("destination", 3, True, "code"),
                    _f("pieces", 5, True, "number"),
                    _f("weight", 10, True, "number"),
                    _f("natureOfGoods", 15, True),
                )),
    SegmentSpec(code="TXT", name="Free Text (Nature of Goods)", required=False, max_length=100, order=4,
                versions=("FHL/4",), fields=(_f("text", 70),)),
    SegmentSpec(code="HTS", name="Harmonized Tariff Schedule", required=False, max_length=20, order=5,
                versions=("FHL/4",), fields=(_f("code", 15),)),
    SegmentSpec(code="OCI", name="Other Customs Information", required=False, max_length=100, order=6,
                versions=FHL_VERSIONS,
                fields=(
                    _f("countryCode", 2, True, "code"),
                    _f("party", 3, True, "code", ("CNE", "SHP")),
                    _f("type", 2, True, "code"),
                    _f("value", 35, True),
                )),
    SegmentSpec(code="SHP", name="Shipper (House)", required=True, max_length=150, order=7,
                versions=FHL_VERSIONS, fields=_PARTY_FIELDS),
    SegmentSpec(code="CNE", name="Consignee (House)", required=True, max_length=150, order=8,
                versions=FHL_VERSIONS, fields=_PARTY_FIELDS),
    SegmentSpec(code="CVD", name="Charge Declarations", required=True, max_length=50, order=9,
                versions=FHL_VERSIONS,
                fields=(
                    _f("currency", 3, True, "code"),
                    _f("wtOt", 2, True, "code", ("PP", "CC", "PC", "CP")),
                )),
    SegmentSpec(code="FTR", name="Footer", required=True, max_length=100, order=10,
                versions=FHL_VERSIONS),
]

FWB_SEGMENTS: Dict[str, SegmentSpec] = {s.code: s for s in _FWB_TABLE}
FHL_SEGMENTS: Dict[str, SegmentSpec] = {s.code: s for s in _FHL_TABLE}

FWB_SEGMENT_CODES: Tuple[str, ...] = tuple(s.code for s in _FWB_TABLE)
FHL_SEGMENT_CODES: Tuple[str, ...] = tuple(s.code for s in _FHL_TABLE)

# Segments that carry the message envelope rather than cargo data
ENVELOPE_SEGMENTS = frozenset({"FWB", "FHL", "FTR"})


def segments_for(message_type: MessageType) -> Dict[str, SegmentSpec]:
    return FWB_SEGMENTS if message_type == "FWB" else FHL_SEGMENTS


def canonical_order(message_type: MessageType) -> Tuple[str, ...]:
    return FWB_SEGMENT_CODES if message_type == "FWB" else FHL_SEGMENT_CODES


def is_legal(code: str, version: str) -> bool:
    """True when `code` may appear in a message of the given version."""
    table = FWB_SEGMENTS if version.startswith("FWB") else FHL_SEGMENTS
    spec = table.get(code)
    return spec is not None and version in spec.versions


def segment_name(message_type: MessageType, code: str) -> str:
    spec = segments_for(message_type).get(code)
    return spec.name if spec else code
