"""Tests for TimeSeries helpers and raw stream conversion."""
from fitstream.analysis.timeseries import (
    Lap,
    TimeSeries,
    downsample,
    from_streams,
    laps_from_dicts,
)


def make_series(n: int = 10) -> TimeSeries:
    return TimeSeries(
        time=list(range(n)),
        heart_rate=[140 + i for i in range(n)],
        power=[200] * (n - 2),  # deliberately shorter than time
    )


class TestChannels:
    def test_available_channels_in_canonical_order(self):
        series = TimeSeries(power=[1], time=[0], heart_rate=[120])
        assert series.available_channels() == ["time", "heartrate", "watts"]

    def test_empty_series_has_no_channels(self):
        series = TimeSeries()
        assert series.available_channels() == []
        assert series.is_empty()

    def test_point_count_is_longest_channel(self):
        assert make_series(10).point_count() == 10

    def test_channel_lookup_by_public_key(self):
        series = make_series(3)
        assert series.channel("heartrate") == [140, 141, 142]
        assert series.channel("watts") == [200]


class TestSlice:
    def test_slice_applies_to_every_channel(self):
        window = make_series(10).slice(2, 5)
        assert window.time == [2, 3, 4]
        assert window.heart_rate == [142, 143, 144]
        assert window.power == [200, 200, 200]

    def test_slice_clamps_short_channels(self):
        window = make_series(10).slice(7, 10)
        assert window.time == [7, 8, 9]
        assert window.power == [200]

    def test_slice_past_end_is_empty(self):
        window = make_series(10).slice(20, 30)
        assert window.is_empty()

    def test_slice_does_not_share_lists(self):
        series = make_series(5)
        window = series.slice(0, 5)
        window.time.append(99)
        assert series.time == [0, 1, 2, 3, 4]


class TestSelect:
    def test_select_keeps_requested_and_time(self):
        series = TimeSeries(time=[0, 1], heart_rate=[1, 2], power=[3, 4], cadence=[5, 6])
        selected = series.select(["watts"])
        assert selected.available_channels() == ["time", "watts"]

    def test_select_ignores_unknown_keys(self):
        series = TimeSeries(time=[0], heart_rate=[1])
        assert series.select(["bogus"]).available_channels() == ["time"]


class TestFromStreams:
    def test_bare_lists(self):
        series = from_streams({"time": [0, 1], "heartrate": [120, 121], "watts": [250, 260]})
        assert series.heart_rate == [120, 121]
        assert series.power == [250, 260]

    def test_strava_envelope(self):
        series = from_streams({"velocity_smooth": {"data": [3.1, 3.2], "series_type": "time"}})
        assert series.velocity == [3.1, 3.2]

    def test_latlng_becomes_tuples(self):
        series = from_streams({"latlng": [[45.0, 7.0], [45.1, 7.1]]})
        assert series.latlng == [(45.0, 7.0), (45.1, 7.1)]

    def test_unknown_keys_ignored(self):
        assert from_streams({"smo2": [1, 2]}).is_empty()


class TestLapsFromDicts:
    def test_fields_mapped(self):
        laps = laps_from_dicts([{
            "name": "Climb", "start_index": 0, "end_index": 99,
            "elapsed_time": 100, "distance": 800, "average_speed": 8.0,
            "average_heartrate": 150, "average_watts": 280,
        }])
        assert laps == [Lap(
            name="Climb", start_index=0, end_index=99, elapsed_time=100.0, distance=800.0,
            average_speed=8.0, average_heartrate=150, average_watts=280,
        )]

    def test_default_name(self):
        laps = laps_from_dicts([{"start_index": 0, "end_index": 1}, {"start_index": 2, "end_index": 3}])
        assert [lap.name for lap in laps] == ["Lap 1", "Lap 2"]


class TestDownsample:
    def test_small_series_untouched(self):
        series = make_series(10)
        assert downsample(series, 100) is series

    def test_thins_to_limit_keeping_ends(self):
        series = TimeSeries(time=list(range(1000)), heart_rate=list(range(1000)))
        thinned = downsample(series, 100)
        assert thinned.point_count() == 100
        assert thinned.time[0] == 0
        assert thinned.time[-1] == 999
        assert thinned.time == thinned.heart_rate

    def test_zero_limit_means_no_limit(self):
        series = make_series(10)
        assert downsample(series, 0) is series
