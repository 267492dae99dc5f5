"""rental_cars.py のユニットテスト"""
import json

import pandas as pd
import pytest

from sunrise_stations import rental_cars
from sunrise_stations.stations_io import StationDataError


def station(name, lon, lat):
    return {
        "type": "Feature",
        "properties": {"N02_003": "外房線", "N02_004": "東日本旅客鉄道", "N02_005": name},
        "geometry": {"type": "LineString", "coordinates": [[lon, lat], [lon + 0.001, lat]]},
    }


def offices_frame(rows):
    cols = ["OFFICE_VEHICLE_ALLOCATION_LIST_OFFICE_ID", "ADDRESS_LATITUDE", "ADDRESS_LONGITUDE",
            "ADDRESS", "OWNED_VEHICLES_PASSENGER", "OWNED_VEHICLES_TOTAL", "PREFECTURE_NAME", "CITY_WARD_TOWN_NAME"]
    return pd.DataFrame(rows, columns=cols, dtype=str)


@pytest.fixture
def stations():
    return rental_cars.unique_station_centers([
        station("勝浦", 140.320, 35.152),
        station("勝浦", 140.999, 35.999),  # duplicate name, first wins
        station("鵜原", 140.290, 35.146),
    ])


class TestStations:
    def test_unique_by_name(self, stations):
        assert list(stations["station"]) == ["勝浦", "鵜原"]
        assert stations.iloc[0]["lon"] == pytest.approx(140.321)


class TestOffices:
    def test_clean_drops_invalid_and_duplicates(self):
        raw = offices_frame([
            ["A1", "35.153", "140.322", "勝浦市1", "5", "8", "千葉県", "勝浦市"],
            ["A1", "35.153", "140.322", "勝浦市1", "5", "8", "千葉県", "勝浦市"],
            ["A2", "0", "140.3", "x", "1", "1", "千葉県", "勝浦市"],
            ["A3", "abc", "140.3", "x", "1", "1", "千葉県", "勝浦市"],
            [None, "35.1", "140.3", "x", "1", "1", "千葉県", "勝浦市"],
        ])
        df = rental_cars.clean_offices(raw)
        assert list(df["office_id"]) == ["A1"]
        assert df.iloc[0]["OWNED_VEHICLES_PASSENGER"] == 5

    def test_missing_required_column(self):
        with pytest.raises(StationDataError):
            rental_cars.clean_offices(pd.DataFrame({"ADDRESS": ["x"]}))

    def test_nearest_station_within_radius(self, stations):
        raw = offices_frame([
            ["A1", "35.153", "140.322", "勝浦市墨名", "5", "8", "千葉県", "勝浦市"],
            ["B1", "35.500", "140.500", "遠い", "5", "8", "千葉県", "いすみ市"],
            ["C1", "35.153", "140.322", "同じ場所", "2", "2", "千葉県", "勝浦市"],
        ])
        features = rental_cars.offices_near_stations(rental_cars.clean_offices(raw), stations)

        assert len(features) == 1
        props = features[0]["properties"]
        assert props["office_id"] == "A1"
        assert props["nearest_station"] == "勝浦"
        assert props["passenger_car_count"] == 5
        assert props["distance_to_station_km"] < 1.0
        assert features[0]["geometry"]["coordinates"] == [140.322, 35.153]

    def test_empty_inputs(self, stations):
        assert rental_cars.offices_near_stations(rental_cars.clean_offices(offices_frame([])), stations) == []


class TestCli:
    def test_main(self, tmp_path):
        src = tmp_path / "stations.geojson"
        src.write_text(json.dumps({"type": "FeatureCollection", "features": [station("勝浦", 140.320, 35.152)]}),
                       encoding="utf-8")
        csv = tmp_path / "offices.csv"
        offices_frame([["A1", "35.153", "140.322", "勝浦市墨名", "5", "8", "千葉県", "勝浦市"]]).to_csv(
            csv, index=False, encoding="utf-8-sig")
        out = tmp_path / "out.geojson"

        rental_cars.main(["-s", str(src), "-c", str(csv), "-o", str(out)])

        data = json.loads(out.read_text(encoding="utf-8"))
        assert data["name"] == "Rental_Car_Offices_Near_Stations"
        assert len(data["features"]) == 1

    def test_main_missing_csv(self, tmp_path):
        src = tmp_path / "stations.geojson"
        src.write_text(json.dumps({"type": "FeatureCollection", "features": []}), encoding="utf-8")
        with pytest.raises(SystemExit):
            rental_cars.main(["-s", str(src), "-c", str(tmp_path / "none.csv"), "-o", str(tmp_path / "o.geojson")])
