import numpy as np
import pandas as pd
import pytest
from scipy import stats

from stream_trends.analysis.core.regression import LinearRegressionAnalyzer, fit_linear
from stream_trends.analysis.core.results import Excluded, LinearFit, TrendResult
from stream_trends.analysis.core.significance import SignificanceClass, classify
from stream_trends.analysis.core.trend_analyzer import TrendAnalyzer, estimate_trend
from stream_trends.analysis.comparative.multiple_comparisons import (
    compact_letter_display, compare_groups
)
from stream_trends.analysis.summary import trend_table, excluded_table


def _make_series(n=30, slope=0.5, noise=0.0, seed=0, start=1990):
    rng = np.random.default_rng(seed)
    years = np.arange(start, start + n)
    values = slope * np.arange(n, dtype=float) + noise * rng.normal(size=n)
    return years, values


class TestSignificanceClassifier:
    """Test p-value to significance class mapping."""

    def test_boundaries(self):
        assert classify(0.05) is SignificanceClass.NOT_SIGNIFICANT
        assert classify(0.0499) is SignificanceClass.SIGNIFICANT
        assert classify(0.005) is SignificanceClass.SIGNIFICANT
        assert classify(0.0049) is SignificanceClass.HIGHLY_SIGNIFICANT

    def test_extremes(self):
        assert classify(1.0) is SignificanceClass.NOT_SIGNIFICANT
        assert classify(1e-12) is SignificanceClass.HIGHLY_SIGNIFICANT

    def test_undefined_p_value_is_not_significant(self):
        assert classify(np.nan) is SignificanceClass.NOT_SIGNIFICANT
        assert classify(None) is SignificanceClass.NOT_SIGNIFICANT

    def test_labels(self):
        assert [c.label for c in SignificanceClass] == ['ns', '*', '**']


class TestTrendAnalyzer:
    """Test Mann-Kendall and Sen slope estimation."""

    @pytest.fixture
    def config(self):
        """Basic configuration for testing."""
        return {
            'trend_analysis': {
                'slope_ci_alpha': 0.05,
                'min_points': 3,
                'prewhitening': False
            }
        }

    def test_analyzer_initialization(self, config):
        analyzer = TrendAnalyzer(config)
        assert analyzer.ci_alpha == 0.05
        assert analyzer.min_points == 3
        assert analyzer.use_pw is False

    def test_min_points_never_below_three(self):
        analyzer = TrendAnalyzer({'trend_analysis': {'min_points': 1}})
        assert analyzer.min_points == 3

    def test_reference_linear_series(self, config):
        """Anomalies of 10, 12, ..., 18 over 2015-2019."""
        analyzer = TrendAnalyzer(config)
        result = analyzer.estimate_trend([2015, 2016, 2017, 2018, 2019], [-4, -2, 0, 2, 4], group=('A',))

        assert isinstance(result, TrendResult)
        assert result.group == ('A',)
        assert result.n == 5
        assert result.tau == 1.0
        assert result.slope == pytest.approx(2.0)
        assert result.s_statistic == 10
        assert result.var_s == pytest.approx(50.0 / 3.0)
        assert result.z_score == pytest.approx(2.204541, abs=1e-5)
        assert result.p_value == pytest.approx(0.02749, abs=1e-4)
        assert result.significance_class is SignificanceClass.SIGNIFICANT
        assert result.label == '*'
        assert result.direction == 'increasing'
        assert (result.start_time, result.end_time) == (2015, 2019)

    def test_strictly_decreasing_series(self, config):
        analyzer = TrendAnalyzer(config)
        years, values = _make_series(n=8, slope=-1.5)
        result = analyzer.estimate_trend(years, values)

        assert result.tau == -1.0
        assert result.slope == pytest.approx(-1.5)
        assert result.direction == 'decreasing'
        assert result.is_significant

    @pytest.mark.parametrize('n', [5, 6, 7, 10, 20])
    def test_strictly_increasing_series_is_significant(self, config, n):
        analyzer = TrendAnalyzer(config)
        years, values = _make_series(n=n, slope=0.3)
        result = analyzer.estimate_trend(years, values)

        assert result.tau == 1.0
        assert result.significance_class is not SignificanceClass.NOT_SIGNIFICANT

    def test_long_series_is_highly_significant(self, config):
        analyzer = TrendAnalyzer(config)
        years, values = _make_series(n=10, slope=1.0)
        result = analyzer.estimate_trend(years, values)

        assert result.p_value < 0.005
        assert result.label == '**'

    def test_flat_series_uses_tie_correction(self, config):
        analyzer = TrendAnalyzer(config)
        result = analyzer.estimate_trend([2015, 2016, 2017, 2018], [0.0, 0.0, 0.0, 0.0])

        assert isinstance(result, TrendResult)
        assert result.s_statistic == 0
        assert result.var_s == 0.0
        assert np.isnan(result.tau)
        assert result.p_value == 1.0
        assert result.slope == 0.0
        assert result.significance_class is SignificanceClass.NOT_SIGNIFICANT
        assert result.direction == 'no trend'

    def test_partial_ties(self, config):
        analyzer = TrendAnalyzer(config)
        mk = analyzer.mann_kendall_test(np.array([1.0, 2.0, 2.0, 3.0]))

        assert mk['S'] == 5
        assert mk['var_s'] == pytest.approx(138.0 / 18.0)
        assert mk['tau'] == pytest.approx(5.0 / np.sqrt(30.0))
        assert 0 < mk['p_value'] <= 1
        assert set(mk) == {'S', 'var_s', 'z_score', 'p_value', 'tau', 'n'}

    def test_fewer_than_three_points_is_excluded(self, config):
        analyzer = TrendAnalyzer(config)
        result = analyzer.estimate_trend([2015, 2016], [1.0, 2.0], group=('B',))

        assert isinstance(result, Excluded)
        assert result.group == ('B',)
        assert result.n == 2
        assert 'insufficient data' in result.reason

    def test_missing_values_are_dropped_before_counting(self, config):
        analyzer = TrendAnalyzer(config)
        result = analyzer.estimate_trend([2015, 2016, 2017], [1.0, np.nan, 2.0])
        assert isinstance(result, Excluded)
        assert result.n == 2

    def test_duplicate_times_are_excluded(self, config):
        analyzer = TrendAnalyzer(config)
        result = analyzer.estimate_trend([2015, 2015, 2016, 2017], [1.0, 2.0, 3.0, 4.0])
        assert isinstance(result, Excluded)
        assert result.reason == 'duplicate time values'

    def test_unordered_input_is_sorted_by_time(self, config):
        analyzer = TrendAnalyzer(config)
        result = analyzer.estimate_trend([2019, 2015, 2017, 2016, 2018], [4, -4, 0, -2, 2])
        assert result.tau == 1.0
        assert result.start_time == 2015

    def test_irregular_sampling_slope_is_per_year(self, config):
        analyzer = TrendAnalyzer(config)
        years = np.array([2000, 2003, 2004, 2010, 2012])
        result = analyzer.estimate_trend(years, 0.25 * years)
        assert result.slope == pytest.approx(0.25)

    def test_slope_confidence_interval_brackets_slope(self, config):
        analyzer = TrendAnalyzer(config)
        years, values = _make_series(n=25, slope=0.2, noise=0.5, seed=3)
        result = analyzer.estimate_trend(years, values)

        lower, upper = result.slope_ci
        assert lower <= result.slope <= upper

    def test_slope_confidence_interval_uses_gilbert_rank_bounds(self, config):
        analyzer = TrendAnalyzer(config)
        years, values = _make_series(n=25, slope=0.2, noise=0.5, seed=3)
        result = analyzer.estimate_trend(years, values)

        reference = stats.theilslopes(values, years, alpha=0.95)
        assert result.slope == pytest.approx(reference[0])
        assert result.slope_ci[0] == pytest.approx(reference[2])
        assert result.slope_ci[1] == pytest.approx(reference[3])

    def test_slope_confidence_interval_small_series(self, config):
        """15 pairwise slopes; 95% rank bounds fall on the 2nd and 14th sorted slope."""
        analyzer = TrendAnalyzer(config)
        result = analyzer.estimate_trend(np.arange(2000, 2006), [0.0, 1.0, 4.0, 5.5, 9.0, 16.0])

        assert result.slope == pytest.approx(8.0 / 3.0)
        assert result.slope_ci == pytest.approx((1.5, 5.25))

    def test_slope_confidence_level_follows_config(self):
        years, values = _make_series(n=25, slope=0.2, noise=0.5, seed=3)
        narrow = TrendAnalyzer({'trend_analysis': {'slope_ci_alpha': 0.2}}).estimate_trend(years, values)
        wide = TrendAnalyzer({'trend_analysis': {'slope_ci_alpha': 0.01}}).estimate_trend(years, values)

        assert wide.slope_ci[0] <= narrow.slope_ci[0]
        assert wide.slope_ci[1] >= narrow.slope_ci[1]
        assert narrow.slope_ci == pytest.approx(tuple(stats.theilslopes(values, years, alpha=0.8)[2:4]))

    def test_noisy_flat_series_has_small_slope(self, config):
        analyzer = TrendAnalyzer(config)
        years, values = _make_series(n=40, slope=0.0, noise=0.02, seed=1)
        result = analyzer.estimate_trend(years, values)
        assert abs(result.slope) < 0.01

    def test_prewhitening_does_not_strengthen_ar1_noise(self):
        n, phi = 60, 0.6
        rng = np.random.default_rng(0)
        e = rng.normal(size=n)
        x = np.zeros(n)
        for i in range(1, n):
            x[i] = phi * x[i - 1] + e[i]
        years = np.arange(1960, 1960 + n)

        plain = TrendAnalyzer({'trend_analysis': {'prewhitening': False}}).estimate_trend(years, x)
        whitened = TrendAnalyzer({'trend_analysis': {'prewhitening': True}}).estimate_trend(years, x)

        assert whitened.prewhitened
        assert not plain.prewhitened
        assert whitened.slope == pytest.approx(plain.slope)
        assert 0 < whitened.p_value <= 1

    def test_module_level_estimate_trend_accepts_pairs_and_series(self):
        pairs = [(2015, 10.0), (2016, 12.0), (2017, 14.0), (2018, 16.0), (2019, 18.0)]
        from_pairs = estimate_trend(pairs)
        from_series = estimate_trend(pd.Series([10.0, 12.0, 14.0, 16.0, 18.0],
                                               index=[2015, 2016, 2017, 2018, 2019]))
        assert from_pairs.tau == from_series.tau == 1.0
        assert from_pairs.slope == pytest.approx(2.0)
        assert isinstance(estimate_trend([]), Excluded)

    def test_analyze_groups_is_independent_per_group(self, config):
        data = pd.DataFrame({
            'entity_id': ['A'] * 5 + ['B'] * 2 + ['C'] * 4,
            'group_key': [None] * 11,
            'time': [2015, 2016, 2017, 2018, 2019, 2015, 2016, 2015, 2016, 2017, 2018],
            'anomaly': [-4, -2, 0, 2, 4, -1, 1, 3, 1, -1, -3],
        })
        analyzer = TrendAnalyzer(config)
        results, excluded = analyzer.analyze_groups(data)

        assert [r.group[0] for r in results] == ['A', 'C']
        assert [e.group[0] for e in excluded] == ['B']
        assert results[1].tau == -1.0

    def test_analyze_groups_thread_pool_matches_serial(self, config):
        rng = np.random.default_rng(7)
        frames = []
        for site in ['S1', 'S2', 'S3', 'S4']:
            frames.append(pd.DataFrame({
                'entity_id': site, 'group_key': 'adult',
                'time': np.arange(2000, 2012),
                'anomaly': rng.normal(size=12),
            }))
        data = pd.concat(frames, ignore_index=True)
        analyzer = TrendAnalyzer(config)

        serial, _ = analyzer.analyze_groups(data)
        pooled, _ = analyzer.analyze_groups(data, max_workers=3)
        assert serial == pooled

    def test_failure_in_one_group_does_not_abort_batch(self, config, monkeypatch):
        analyzer = TrendAnalyzer(config)
        original = analyzer.estimate_trend

        def flaky(times, values, group=()):
            if group[0] == 'bad':
                raise RuntimeError("boom")
            return original(times, values, group=group)

        monkeypatch.setattr(analyzer, 'estimate_trend', flaky)
        data = pd.DataFrame({
            'entity_id': ['bad'] * 3 + ['good'] * 3,
            'group_key': [None] * 6,
            'time': [2001, 2002, 2003] * 2,
            'anomaly': [1.0, 2.0, 3.0, 3.0, 2.0, 1.0],
        })
        results, excluded = analyzer.analyze_groups(data)

        assert [r.group[0] for r in results] == ['good']
        assert excluded[0].group[0] == 'bad'
        assert excluded[0].reason.startswith('error:')


class TestLinearRegression:
    """Test the OLS regression companion."""

    def test_exact_linear_fit(self):
        fit = fit_linear([(2015, -4.0), (2016, -2.0), (2017, 0.0), (2018, 2.0), (2019, 4.0)])
        assert isinstance(fit, LinearFit)
        assert fit.slope == pytest.approx(2.0)
        assert fit.intercept == pytest.approx(-4034.0)
        assert fit.r_squared == pytest.approx(1.0)
        assert fit.transform == 'none'

    def test_noisy_fit_statistics(self):
        years = np.arange(2000, 2015)
        values = 0.5 * (years - 2000) + np.array(
            [0.3, -0.2, 0.1, 0.4, -0.5, 0.2, -0.1, 0.0, 0.3, -0.3, 0.1, -0.2, 0.4, -0.4, 0.2])
        fit = fit_linear(pd.Series(values, index=years))

        assert fit.slope == pytest.approx(0.5, abs=0.05)
        assert fit.slope_se > 0
        assert 0 < fit.r_squared <= 1
        assert fit.p_value < 0.001

    def test_two_points_reports_nan_standard_errors(self):
        fit = fit_linear([(2015, 1.0), (2016, 3.0)])
        assert fit.n == 2
        assert fit.slope == pytest.approx(2.0)
        assert np.isnan(fit.slope_se)
        assert np.isnan(fit.intercept_se)
        assert np.isnan(fit.p_value)
        assert fit.r_squared == 1.0

    def test_single_point_is_excluded(self):
        assert isinstance(fit_linear([(2015, 1.0)]), Excluded)

    def test_zero_time_variance_reports_nan(self):
        fit = fit_linear([(2015, 1.0), (2015, 2.0), (2015, 3.0)])
        assert np.isnan(fit.slope)
        assert np.isnan(fit.r_squared)
        assert np.isnan(fit.p_value)
        assert fit.intercept == pytest.approx(2.0)

    def test_zero_value_variance_reports_nan_r_squared(self):
        fit = fit_linear([(2015, 5.0), (2016, 5.0), (2017, 5.0)])
        assert fit.slope == pytest.approx(0.0, abs=1e-6)
        assert np.isnan(fit.r_squared)

    def test_log_transform(self):
        years = np.arange(2010, 2016)
        values = 3.0 * np.exp(0.5 * (years - 2010))
        fit = fit_linear(pd.Series(values, index=years), transform='log')
        assert fit.transform == 'log'
        assert fit.slope == pytest.approx(0.5)

    def test_log_transform_drops_non_positive_values(self):
        fit = fit_linear([(2010, 0.0), (2011, 1.0), (2012, np.e), (2013, np.e ** 2)], transform='log')
        assert fit.n == 3
        assert fit.slope == pytest.approx(1.0)

    def test_unknown_transform_raises(self):
        with pytest.raises(ValueError):
            LinearRegressionAnalyzer({'regression': {'transform': 'sqrt'}})
        with pytest.raises(ValueError):
            fit_linear([(2015, 1.0), (2016, 2.0)], transform='sqrt')


class TestMultipleComparisons:
    """Test Tukey HSD letters."""

    def test_letter_display_overlap(self):
        letters = compact_letter_display(['A', 'B', 'C'], [('A', 'C')])
        assert letters == {'A': 'a', 'B': 'ab', 'C': 'b'}

    def test_letter_display_all_different(self):
        letters = compact_letter_display(['A', 'B', 'C'], [('A', 'B'), ('A', 'C'), ('B', 'C')])
        assert letters == {'A': 'a', 'B': 'b', 'C': 'c'}

    def test_letter_display_no_differences(self):
        letters = compact_letter_display(['A', 'B', 'C'], [])
        assert set(letters.values()) == {'a'}

    def test_compare_groups(self):
        base = [9.8, 10.1, 10.0, 9.9, 10.2, 10.0, 9.7, 10.3, 10.1, 9.9]
        data = pd.DataFrame({
            'group_key': ['pool'] * 10 + ['riffle'] * 10 + ['run'] * 10 + ['glide'],
            'value': base + [v + 0.05 for v in base] + [v + 10 for v in base] + [3.0],
        })
        result = compare_groups(data, 'group_key')

        assert list(result['group']) == ['run', 'riffle', 'pool']
        letters = dict(zip(result['group'], result['letters']))
        assert letters['run'] == 'a'
        assert letters['pool'] == letters['riffle'] == 'b'
        assert result['n'].tolist() == [10, 10, 10]

    def test_compare_single_group(self):
        data = pd.DataFrame({'group_key': ['pool'] * 4, 'value': [1.0, 2.0, 3.0, 4.0]})
        result = compare_groups(data, 'group_key')
        assert result['letters'].tolist() == ['a']

    def test_compare_missing_column_raises(self):
        with pytest.raises(ValueError):
            compare_groups(pd.DataFrame({'value': [1.0]}), 'group_key')


class TestSummaryTables:
    """Test tabular views for the presentation layer."""

    @pytest.fixture
    def results(self):
        analyzer = TrendAnalyzer()
        return [
            analyzer.estimate_trend([2015, 2016, 2017, 2018, 2019], [-4, -2, 0, 2, 4], group=('A', 'adult')),
            analyzer.estimate_trend([2015, 2016, 2017], [0.333333, 0.1, -0.433333], group=('B', 'adult')),
        ]

    def test_full_precision_table(self, results):
        table = trend_table(results, ('entity_id', 'group_key'))
        assert list(table['entity_id']) == ['A', 'B']
        assert table.loc[1, 'slope'] == pytest.approx(-0.383333)
        assert list(table['significance']) == ['significant', 'not_significant']

    def test_display_table(self, results):
        table = trend_table(results, ('entity_id', 'group_key'), display=True)
        assert list(table.columns) == ['entity_id', 'group_key', 'n', 'tau', 'slope', 'p_value', 'significance']
        assert table.loc[1, 'slope'] == -0.38
        assert list(table['significance']) == ['*', 'ns']

    def test_empty_tables(self):
        assert trend_table([], ('entity_id',)).empty
        table = excluded_table([Excluded(group=('Z',), n=1, reason='insufficient data')], ('entity_id',))
        assert table.loc[0, 'entity_id'] == 'Z'
