import json
import unittest

from dispatch_schemas import IncidentRecord, UnitRecord
from feature_builder import (
    build_feature_collection,
    build_features,
    build_incident_feature,
    build_unit_feature,
)
from stubs import make_incident, make_unit


def incident(**kwargs):
    return IncidentRecord.model_validate_json(json.dumps(make_incident(**kwargs)))


def unit(**kwargs):
    return UnitRecord.model_validate_json(json.dumps(make_unit(**kwargs)))


class IncidentFeatureTest(unittest.TestCase):
    def test_coordinates_are_longitude_first(self):
        feature = build_incident_feature(incident(incident_id=42, latitude=39.74, longitude=-105.21))

        self.assertEqual(feature["geometry"], {"type": "Point", "coordinates": [-105.21, 39.74]})

    def test_feature_shape(self):
        feature = build_incident_feature(incident(incident_id=42, incident_type="Vehicle Fire"))

        self.assertEqual(feature["id"], "42")
        self.assertEqual(feature["type"], "Feature")
        self.assertEqual(
            feature["properties"],
            {"type": "a-f-G", "how": "m-g", "callsign": "Vehicle Fire", "remarks": ""},
        )

    def test_missing_incident_type_falls_back(self):
        feature = build_incident_feature(incident(incident_id=1, incident_type=None))

        self.assertEqual(feature["properties"]["callsign"], "Unknown Incident")

    def test_incident_without_coordinates_is_skipped(self):
        self.assertIsNone(build_incident_feature(incident(incident_id=1, latitude=None)))
        self.assertIsNone(build_incident_feature(incident(incident_id=2, longitude=None)))
        self.assertIsNone(build_incident_feature(incident(incident_id=3, latitude=0.0, longitude=0.0)))


class UnitFeatureTest(unittest.TestCase):
    def test_unit_feature(self):
        feature = build_unit_feature(unit(unit_id=7, name="M12", status="At Hospital", latitude=39.7, longitude=-105.1))

        self.assertEqual(feature["id"], "7")
        self.assertEqual(feature["properties"]["callsign"], "M12")
        self.assertEqual(feature["properties"]["remarks"], "At Hospital")
        self.assertEqual(feature["geometry"]["coordinates"], [-105.1, 39.7])


class BuildFeaturesTest(unittest.TestCase):
    def test_preserves_record_order_and_drops_unlocated_incidents(self):
        records = [
            incident(incident_id=3),
            incident(incident_id=1, latitude=None),
            incident(incident_id=2),
        ]

        features = build_features(records, "incidents")

        self.assertEqual([f["id"] for f in features], ["3", "2"])

    def test_every_unit_yields_a_feature(self):
        records = [unit(unit_id=i, name=f"E{i}") for i in range(1, 4)]

        features = build_features(records, "units")

        self.assertEqual([f["properties"]["callsign"] for f in features], ["E1", "E2", "E3"])

    def test_collection(self):
        collection = build_feature_collection([])

        self.assertEqual(collection, {"type": "FeatureCollection", "features": []})


if __name__ == "__main__":
    unittest.main()
