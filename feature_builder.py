from typing import Dict, Iterable, List, Optional

from dispatch_schemas import IncidentRecord, UnitRecord

# Point feature generator for the map sink

FEATURE_TYPE = "a-f-G"  # point entity
FEATURE_HOW = "m-g"  # machine generated
UNKNOWN_INCIDENT = "Unknown Incident"


def _point_feature(feature_id: str, callsign: str, remarks: str, longitude: float, latitude: float) -> Dict:
    return {
        "id": feature_id,
        "type": "Feature",
        "properties": {
            "type": FEATURE_TYPE,
            "how": FEATURE_HOW,
            "callsign": callsign,
            "remarks": remarks,
        },
        "geometry": {
            "type": "Point",
            # GeoJSON order: longitude first
            "coordinates": [longitude, latitude],
        },
    }


def build_incident_feature(incident: IncidentRecord) -> Optional[Dict]:
    """Build a point feature from an incident, or None when it has no location."""
    location = incident.LocationInformation
    if not (location.Latitude and location.Longitude):
        return None
    return _point_feature(
        str(incident.IncidentId),
        incident.IncidentType.Incident_Type or UNKNOWN_INCIDENT,
        "",
        location.Longitude,
        location.Latitude,
    )


def build_unit_feature(unit: UnitRecord) -> Dict:
    """Build a point feature from a unit's current position."""
    return _point_feature(
        str(unit.UnitID),
        unit.UnitName,
        unit.StatusName,
        unit.Longitude,
        unit.Latitude,
    )


def build_features(records: Iterable, data_type: str) -> List[Dict]:
    """Extract features from validated records, preserving record order."""
    features = []
    if data_type == "incidents":
        for incident in records:
            feature = build_incident_feature(incident)
            if feature is not None:
                features.append(feature)
    else:
        features.extend(build_unit_feature(unit) for unit in records)
    return features


def build_feature_collection(features: Iterable[Dict]) -> Dict:
    return {
        "type": "FeatureCollection",
        "features": list(features),
    }
