"""last_train.py のユニットテスト"""
import json
from datetime import date
from types import MappingProxyType

import pytest

from sunrise_stations.last_train import (
    CALENDAR_SATURDAY_HOLIDAY,
    CALENDAR_WEEKDAY,
    JR_EAST,
    KEIKYU,
    StationMapping,
    annotate_last_trains,
    calendar_for,
    default_name_mapping,
    latest_trains,
    load_name_mapping,
    load_timetables,
    main,
    restrict_to_date,
    timetables_to_frame,
)
from sunrise_stations.stations_io import StationDataError


def timetable(railway, station, calendar, times, operator="JR-East"):
    return {
        "@type": "odpt:StationTimetable",
        "odpt:railway": f"odpt.Railway:{operator}.{railway}",
        "odpt:station": f"odpt.Station:{operator}.{railway}.{station}",
        "odpt:calendar": f"odpt.Calendar:{calendar}",
        "odpt:stationTimetableObject": [
            {
                "odpt:departureTime": t,
                "odpt:trainType": f"odpt.TrainType:{operator}.Local",
                "odpt:trainNumber": f"{i}M",
            }
            for i, t in enumerate(times, 1)
        ],
    }


def station(name, operator="東日本旅客鉄道", line="外房線"):
    return {
        "type": "Feature",
        "properties": {"N02_003": line, "N02_004": operator, "N02_005": name},
        "geometry": {"type": "LineString", "coordinates": [[140.3, 35.15], [140.31, 35.15]]},
    }


@pytest.fixture
def jr_frame():
    entries = [
        timetable("Sotobo", "Katsuura", "Weekday", ["22:10", "23:40", "00:19"]),
        timetable("Sotobo", "Katsuura", "SaturdayHoliday", ["22:10", "23:30"]),
        timetable("Sotobo", "AwaKamogawa", "Weekday", ["23:05"]),
        timetable("Uchibo", "AwaKamogawa", "Weekday", ["23:20"]),
    ]
    return timetables_to_frame(entries, JR_EAST)


class TestNameMapping:
    def test_default_is_immutable(self):
        mapping = default_name_mapping()
        assert isinstance(mapping, MappingProxyType)
        with pytest.raises(TypeError):
            mapping["新駅"] = (StationMapping("Shin", "Sotobo", JR_EAST),)

    def test_multi_railway_station(self):
        mapping = default_name_mapping()
        railways = {m.railway for m in mapping["安房鴨川"]}
        assert railways == {"Sotobo", "Uchibo"}
        assert mapping["三浦海岸"][0].operator == KEIKYU

    def test_load_from_csv(self, tmp_path):
        path = tmp_path / "mapping.csv"
        path.write_text(
            "station,romaji,railway,operator\n"
            "勝浦,Katsuura,Sotobo,JREast\n"
            "安房鴨川,AwaKamogawa,Sotobo,JREast\n"
            "安房鴨川,AwaKamogawa,Uchibo,JREast\n",
            encoding="utf-8",
        )
        mapping = load_name_mapping(path)
        assert mapping["勝浦"] == (StationMapping("Katsuura", "Sotobo", JR_EAST),)
        assert len(mapping["安房鴨川"]) == 2

    def test_load_rejects_missing_columns(self, tmp_path):
        path = tmp_path / "mapping.csv"
        path.write_text("station,romaji\n勝浦,Katsuura\n", encoding="utf-8")
        with pytest.raises(StationDataError):
            load_name_mapping(path)

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(StationDataError):
            load_name_mapping(tmp_path / "none.csv")

    def test_load_malformed_csv(self, tmp_path):
        path = tmp_path / "mapping.csv"
        path.write_text(
            "station,romaji,railway,operator\n勝浦,Katsuura,Sotobo,JREast\n鵜原,Ubara,Sotobo,JREast,x,y,z\n",
            encoding="utf-8",
        )
        with pytest.raises(StationDataError):
            load_name_mapping(path)


class TestTimetableFrame:
    def test_flattened_rows(self, jr_frame):
        assert len(jr_frame) == 7
        assert set(jr_frame["railway"]) == {"Sotobo", "Uchibo"}
        assert jr_frame.iloc[0]["train_type"] == "Local"
        assert jr_frame.iloc[0]["calendar"] == "Weekday"

    def test_short_identifiers_are_dropped(self):
        bad = {"odpt:railway": "Sotobo", "odpt:station": "odpt.Station:Katsuura",
               "odpt:stationTimetableObject": [{"odpt:departureTime": "23:00"}]}
        assert timetables_to_frame([bad], JR_EAST).empty

    def test_objects_without_time_are_ignored(self):
        tt = timetable("Sotobo", "Katsuura", "Weekday", [])
        tt["odpt:stationTimetableObject"] = [{"odpt:trainNumber": "1M"}, {"odpt:arrivalTime": "23:59"}]
        df = timetables_to_frame([tt], JR_EAST)
        assert list(df["time"]) == ["23:59"]

    def test_latest_uses_service_day(self, jr_frame):
        latest = latest_trains(jr_frame)
        row = latest.loc[(JR_EAST, "Sotobo", "Katsuura")]
        assert row["time"] == "00:19"
        assert row["train_number"] == "3M"

    def test_latest_of_empty_frame(self):
        assert latest_trains(timetables_to_frame([], JR_EAST)).empty

    def test_load_timetables_reads_each_operator(self, tmp_path):
        jr = tmp_path / "jr.json"
        kq = tmp_path / "kq.json"
        jr.write_text(json.dumps([timetable("Sotobo", "Katsuura", "Weekday", ["23:40"])]), encoding="utf-8")
        kq.write_text(json.dumps([timetable("Kurihama", "Miurakaigan", "Weekday", ["00:05"], operator="Keikyu")]),
                      encoding="utf-8")
        frame = load_timetables({JR_EAST: jr, KEIKYU: kq})
        assert set(frame["operator"]) == {JR_EAST, KEIKYU}

    def test_load_timetables_missing_file(self, tmp_path):
        with pytest.raises(StationDataError):
            load_timetables({JR_EAST: tmp_path / "none.json"})


class TestCalendar:
    def test_new_year_is_holiday(self):
        assert calendar_for(date(2026, 1, 1)) == CALENDAR_SATURDAY_HOLIDAY

    def test_plain_weekday(self):
        assert calendar_for(date(2026, 1, 7)) == CALENDAR_WEEKDAY

    def test_restrict_to_date(self, jr_frame):
        holiday = restrict_to_date(jr_frame, date(2026, 1, 1))
        assert set(holiday["calendar"]) == {CALENDAR_SATURDAY_HOLIDAY}
        latest = latest_trains(holiday)
        assert latest.loc[(JR_EAST, "Sotobo", "Katsuura")]["time"] == "23:30"


class TestAnnotate:
    def test_mapped_station_gets_last_train(self, jr_frame):
        report = annotate_last_trains([station("勝浦")], jr_frame, default_name_mapping())
        props = report.features[0]["properties"]
        assert props["last_train_arrival"] == "00:19"
        assert props["last_train_info"] == "Local 3M"
        assert len(report.matched) == 1

    def test_latest_across_mapped_railways(self, jr_frame):
        report = annotate_last_trains([station("安房鴨川")], jr_frame, default_name_mapping())
        assert report.features[0]["properties"]["last_train_arrival"] == "23:20"

    def test_unmapped_station_is_left_alone(self, jr_frame):
        other = station("銚子", operator="銚子電気鉄道")
        jr_unmapped = station("上総一ノ宮")
        report = annotate_last_trains([other, jr_unmapped], jr_frame, default_name_mapping())

        assert report.features[0] is other
        assert "last_train_arrival" not in report.features[1]["properties"]
        assert report.unmatched == ["上総一ノ宮 (外房線)"]

    def test_mapped_but_no_timetable(self, jr_frame):
        report = annotate_last_trains([station("日立", line="常磐線")], jr_frame, default_name_mapping())
        assert report.no_timetable == ["日立 (常磐線)"]
        assert "last_train_arrival" not in report.features[0]["properties"]

    def test_custom_mapping_is_used(self, jr_frame):
        mapping = MappingProxyType({"かつうら": (StationMapping("Katsuura", "Sotobo", JR_EAST),)})
        report = annotate_last_trains([station("かつうら")], jr_frame, mapping)
        assert report.features[0]["properties"]["last_train_arrival"] == "00:19"


class TestCli:
    def test_main_writes_output(self, tmp_path):
        stations_path = tmp_path / "stations.geojson"
        stations_path.write_text(json.dumps({"type": "FeatureCollection", "features": [station("勝浦")]}),
                                 encoding="utf-8")
        jr = tmp_path / "jr.json"
        jr.write_text(json.dumps([timetable("Sotobo", "Katsuura", "Weekday", ["23:40"])]), encoding="utf-8")
        kq = tmp_path / "kq.json"
        kq.write_text("[]", encoding="utf-8")
        out = tmp_path / "out.geojson"

        main(["-s", str(stations_path), "--jreast", str(jr), "--keikyu", str(kq), "-o", str(out)])

        data = json.loads(out.read_text(encoding="utf-8"))
        assert data["features"][0]["properties"]["last_train_arrival"] == "23:40"

    def test_main_missing_input_exits(self, tmp_path):
        with pytest.raises(SystemExit):
            main(["-s", str(tmp_path / "none.geojson")])

    def test_main_missing_mapping_exits(self, tmp_path):
        stations_path = tmp_path / "stations.geojson"
        stations_path.write_text(json.dumps({"type": "FeatureCollection", "features": [station("勝浦")]}),
                                 encoding="utf-8")
        with pytest.raises(SystemExit):
            main(["-s", str(stations_path), "-m", str(tmp_path / "none.csv")])
