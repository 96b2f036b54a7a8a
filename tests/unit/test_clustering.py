"""Unit tests for clustering module."""

import warnings

import pytest
import numpy as np
import pandas as pd

from consensus_refinery.core.clustering import (
    ClusterSingleConfig,
    ClusterSingleEngine,
    MainClusteringWrapper,
    MainClusterParams,
    SeqParams,
    SequentialClusterer,
    SubsampleCoClusterer,
    SubsampleParams,
    cluster_single,
    run_many,
)
from consensus_refinery.core.clustering.batch import unique_labels
from consensus_refinery.core.clustering.sequential import STOP_MIN_K, top_candidates
from consensus_refinery.core.clustering.wrapper import default_k_range
from consensus_refinery.core.validation import (
    ClusteringWarning,
    ComputationInvariantViolation,
    ConfigurationError,
)

from tests.fixtures import (
    RecordingReducer,
    RecordingSequential,
    RecordingSubsample,
    block_dissimilarity,
    make_fixed_function,
)


def same_partition(labels: np.ndarray, truth: np.ndarray) -> bool:
    """True if labels and truth define the same partition."""
    pairs = set(zip(labels.tolist(), truth.tolist()))
    return len(pairs) == len(set(labels.tolist())) == len(set(truth.tolist()))


def block_co(truth: np.ndarray, within: float = 0.9, between: float = 0.1) -> np.ndarray:
    co = np.where(truth[:, None] == truth[None, :], within, between)
    np.fill_diagonal(co, 1.0)
    return co


KMEANS_K3 = MainClusterParams(cluster_function="kmeans", cluster_args={"k": 3})
SEQ = SeqParams(k0=3, beta=0.8)


# ============================================================================
# Configuration
# ============================================================================


class TestClusterSingleConfig:
    """Tests for ClusterSingleConfig and its parts."""

    def test_default_values(self):
        """Test default configuration values."""
        config = ClusterSingleConfig()
        assert config.subsample is False
        assert config.sequential is False
        assert config.reduce_method == "none"
        assert config.main.cluster_function == "hierarchical01"
        assert config.main.cluster_args == {"alpha": 0.1}
        assert config.subsample_params.resamp_num == 100
        assert config.subsample_params.samp_p == 0.7
        assert config.subsample_params.random_seed == 1337
        assert config.seq_params is None

    def test_seq_defaults(self):
        seq = SeqParams(k0=4, beta=0.7)
        assert seq.top_can == 5
        assert seq.remain_n == 30
        assert seq.k_min == 3
        assert seq.k_max is None

    def test_from_yaml(self, cluster_yaml):
        """Test loading config from YAML with a nested section."""
        config = ClusterSingleConfig.from_yaml(cluster_yaml)
        assert config.cluster_label == "kmeans_k3"
        assert config.reduce_method == "PCA"
        assert config.n_dims == 5
        assert config.main.cluster_function == "kmeans"
        assert config.main.cluster_args == {"k": 3}

    def test_dict_roundtrip(self):
        config = ClusterSingleConfig(
            sequential=True,
            main=MainClusterParams("kmeans", {}, k_range=[2, 3]),
            seq_params=SeqParams(k0=3, beta=0.9, k_max=8),
        )
        assert ClusterSingleConfig.from_dict(config.to_dict()) == config

    def test_with_cluster_args_copies(self):
        """with_cluster_args never mutates the original."""
        params = MainClusterParams("kmeans", {"k": 3})
        updated = params.with_cluster_args(k=5)
        assert params.cluster_args == {"k": 3}
        assert updated.cluster_args == {"k": 5}


# ============================================================================
# Main clustering step
# ============================================================================


class TestMainClusteringWrapper:
    """Tests for MainClusteringWrapper."""

    def test_cluster_diss(self, small_diss):
        wrapper = MainClusteringWrapper(MainClusterParams(cluster_args={"alpha": 0.2}))
        result = wrapper.apply(diss=small_diss)
        np.testing.assert_array_equal(result.labels, [1, 1, 1, 2, 2, 2])

    def test_cluster_x_with_default_distance(self, blobs):
        """A diss-only function on x uses the correlation dissimilarity."""
        x, truth = blobs
        result = MainClusteringWrapper(MainClusterParams()).apply(x=x)
        assert same_partition(result.labels, truth)
        assert result.diss.shape == (60, 60)

    def test_subsample_discards_x(self, blobs):
        """With subsample, x goes to subsampling and only 1 - co is clustered."""
        x, truth = blobs
        co = block_co(truth)
        fake = RecordingSubsample(co)
        wrapper = MainClusteringWrapper(MainClusterParams(), subsample_fn=fake)
        result = wrapper.apply(x=x, subsample=True, subsample_params=SubsampleParams(cluster_args={"k": 3}))
        assert len(fake.calls) == 1
        assert fake.calls[0]["x"] is x
        np.testing.assert_allclose(result.diss, 1 - co)
        assert same_partition(result.labels, truth)

    def test_bad_cooccurrence(self, small_diss):
        fake = RecordingSubsample(np.ones((2, 2)))
        wrapper = MainClusteringWrapper(MainClusterParams(), subsample_fn=fake)
        with pytest.raises(ComputationInvariantViolation) as exc_info:
            wrapper.apply(diss=small_diss, subsample=True)
        assert exc_info.value.error_code == "I004_BAD_COOCCURRENCE"

    def test_min_size(self, small_diss):
        fn = make_fixed_function([1, 1, 1, 2, 2, 3], input_type="diss")
        wrapper = MainClusteringWrapper(MainClusterParams(fn, {}, min_size=2))
        np.testing.assert_array_equal(wrapper.apply(diss=small_diss).labels, [1, 1, 1, 2, 2, -1])

    def test_wrong_length(self, small_diss):
        fn = make_fixed_function([1, 2], input_type="diss")
        with pytest.raises(ComputationInvariantViolation) as exc_info:
            MainClusteringWrapper(MainClusterParams(fn, {})).apply(diss=small_diss)
        assert exc_info.value.error_code == "I001_LABEL_LENGTH"

    def test_find_best_k(self, blobs):
        x, truth = blobs
        main = MainClusterParams("kmeans", {}, find_best_k=True, k_range=(2, 3, 4, 5))
        result = MainClusteringWrapper(main).apply(x=x)
        assert result.best_k == 3
        assert set(result.silhouette) == {2, 3, 4, 5}
        assert same_partition(result.labels, truth)

    def test_default_k_range(self):
        assert list(default_k_range(5, 100)) == list(range(3, 26))
        assert list(default_k_range(3, 6)) == [2, 3, 4, 5]

    def test_remove_sil(self, small_diss):
        """A sample placed in the wrong block has negative silhouette and is unassigned."""
        fn = make_fixed_function([1, 1, 2, 2, 2, 2], input_type="diss")
        main = MainClusterParams(fn, {}, remove_sil=True, sil_cutoff=0.0)
        labels = MainClusteringWrapper(main).apply(diss=small_diss).labels
        np.testing.assert_array_equal(labels, [1, 1, -1, 2, 2, 2])


# ============================================================================
# Orchestrator validation
# ============================================================================


class TestClusterSingleValidation:
    """Every invalid configuration fails before any clustering call."""

    def _engine(self, **config_kwargs):
        self.sequential = RecordingSequential(np.ones(6, dtype=int))
        self.subsample = RecordingSubsample(np.eye(6))
        config = ClusterSingleConfig(**config_kwargs)
        return ClusterSingleEngine(config, sequential_fn=self.sequential, subsample_fn=self.subsample)

    def _assert_code(self, code, x=None, diss=None, **config_kwargs):
        engine = self._engine(**config_kwargs)
        with pytest.raises(ConfigurationError) as exc_info:
            engine.run(x=x, diss=diss)
        assert exc_info.value.error_code == code
        assert self.sequential.calls == []
        assert self.subsample.calls == []

    def test_missing_input(self):
        self._assert_code("C001_MISSING_INPUT")

    def test_x_only_function_with_diss(self, small_diss):
        self._assert_code("C001_MISSING_INPUT", diss=small_diss, main=KMEANS_K3)

    def test_invalid_diss(self):
        self._assert_code("C002_INVALID_DISS", diss=np.array([[0.0, 0.2], [0.3, 0.0]]))

    def test_shape_mismatch(self, small_diss):
        self._assert_code("C010_SHAPE_MISMATCH", x=np.zeros((5, 2)), diss=small_diss)

    def test_illegal_combination(self, small_diss):
        """subsample=False, sequential=True with a ZeroOne function is rejected."""
        self._assert_code(
            "C004_ILLEGAL_COMBINATION", diss=small_diss, sequential=True, seq_params=SEQ,
        )

    def test_subsample_needs_zero_one(self, small_diss):
        self._assert_code("C004_ILLEGAL_COMBINATION", x=np.zeros((6, 2)), subsample=True, main=KMEANS_K3)

    def test_missing_seq_params(self):
        self._assert_code(
            "C003_MISSING_SEQ_PARAM", x=np.zeros((6, 2)), sequential=True,
            main=MainClusterParams("kmeans", {}), seq_params=SeqParams(k0=3),
        )

    def test_sequential_forbids_k(self):
        self._assert_code(
            "C005_FORBIDDEN_PARAM", x=np.zeros((6, 2)), sequential=True,
            main=KMEANS_K3, seq_params=SEQ,
        )

    def test_sequential_forbids_find_best_k(self):
        self._assert_code(
            "C005_FORBIDDEN_PARAM", x=np.zeros((6, 2)), sequential=True,
            main=MainClusterParams("kmeans", {}, find_best_k=True), seq_params=SEQ,
        )

    def test_dist_function_with_diss(self, small_diss):
        self._assert_code(
            "C005_FORBIDDEN_PARAM", diss=small_diss,
            main=MainClusterParams(dist_function="euclidean"),
        )

    def test_dist_function_with_subsampled_diss(self, small_diss):
        """Subsampling a supplied dissimilarity still rejects main.dist_function."""
        self._assert_code(
            "C005_FORBIDDEN_PARAM", diss=small_diss, subsample=True,
            main=MainClusterParams(dist_function="euclidean"),
            subsample_params=SubsampleParams("hierarchicalK", {"k": 2}),
        )

    def test_reduce_with_diss(self, small_diss):
        self._assert_code("C005_FORBIDDEN_PARAM", diss=small_diss, reduce_method="PCA")

    def test_unknown_reduce_method(self):
        self._assert_code("C007_UNKNOWN_METHOD", x=np.zeros((6, 2)), reduce_method="tsne")

    def test_unknown_function(self):
        self._assert_code(
            "C007_UNKNOWN_METHOD", x=np.zeros((6, 2)), main=MainClusterParams("kmean", {"k": 2}),
        )

    def test_missing_cluster_arg(self):
        self._assert_code("C009_MISSING_CLUSTER_ARG", x=np.zeros((6, 2)), main=MainClusterParams("kmeans", {}))

    def test_missing_subsample_k(self):
        self._assert_code("C009_MISSING_CLUSTER_ARG", x=np.zeros((6, 2)), subsample=True)

    def test_sequential_subsample_needs_k_function(self):
        self._assert_code(
            "C008_WRONG_ALGORITHM_TYPE", x=np.zeros((6, 2)), subsample=True, sequential=True,
            subsample_params=SubsampleParams("hierarchical01", {"alpha": 0.1}), seq_params=SEQ,
        )

    def test_find_best_k_needs_k_function(self):
        self._assert_code(
            "C008_WRONG_ALGORITHM_TYPE", x=np.zeros((6, 2)),
            main=MainClusterParams(find_best_k=True),
        )

    def test_beta_out_of_range(self):
        self._assert_code(
            "C006_OUT_OF_RANGE", x=np.zeros((6, 2)), sequential=True,
            main=MainClusterParams("kmeans", {}), seq_params=SeqParams(k0=3, beta=1.5),
        )

    def test_samp_p_out_of_range(self):
        self._assert_code(
            "C006_OUT_OF_RANGE", x=np.zeros((6, 2)), subsample=True,
            subsample_params=SubsampleParams(cluster_args={"k": 2}, samp_p=0.0),
        )


# ============================================================================
# Orchestrator dispatch
# ============================================================================


class TestClusterSingleDispatch:
    """Tests for dispatch and provenance with fake collaborators."""

    def test_sequential_dispatch(self, blobs):
        x, _ = blobs
        labels = np.r_[np.ones(30, dtype=int), -np.ones(30, dtype=int)]
        fake = RecordingSequential(labels, why_stop="Reached maximum k")
        config = ClusterSingleConfig(
            sequential=True, main=MainClusterParams("kmeans", {}), seq_params=SEQ,
        )
        result = cluster_single(x, config=config, sequential_fn=fake)

        assert len(fake.calls) == 1
        assert fake.calls[0]["subsample"] is False
        assert fake.calls[0]["seq_params"] == SEQ
        np.testing.assert_array_equal(result.labels, labels)
        assert result.cluster_info["why_stop"] == "Reached maximum k"
        assert result.cluster_info["cluster_info"][0]["k"] == 3
        assert result.co_clustering is None

    @pytest.mark.parametrize("labels,code", [
        (np.ones(5, dtype=int), "I001_LABEL_LENGTH"),
        (np.full(60, 1.5), "I002_NON_NUMERIC"),
        (np.full(60, -3), "I002_NON_NUMERIC"),
    ])
    def test_sequential_labels_checked(self, blobs, labels, code):
        """Labels from the sequential search must be a length-M integer vector."""
        x, _ = blobs
        fake = RecordingSequential(labels)
        config = ClusterSingleConfig(
            sequential=True, main=MainClusterParams("kmeans", {}), seq_params=SEQ,
        )
        with pytest.raises(ComputationInvariantViolation) as exc_info:
            cluster_single(x, config=config, sequential_fn=fake)
        assert exc_info.value.error_code == code

    def test_subsample_dispatch(self, blobs):
        """Subsampling without sequential records co_clustering = 1 - diss."""
        x, truth = blobs
        co = block_co(truth)
        fake = RecordingSubsample(co)
        config = ClusterSingleConfig(subsample=True, subsample_params=SubsampleParams(cluster_args={"k": 3}))
        result = cluster_single(x, config=config, subsample_fn=fake)

        assert len(fake.calls) == 1
        np.testing.assert_allclose(result.co_clustering, co)
        assert same_partition(result.labels, truth)
        assert result.cluster_info["input_type"] == "X"

    def test_sequential_with_subsample_warns_on_k(self, blobs):
        x, _ = blobs
        fake = RecordingSequential(np.ones(60, dtype=int))
        config = ClusterSingleConfig(
            subsample=True, sequential=True,
            subsample_params=SubsampleParams(cluster_args={"k": 3}), seq_params=SEQ,
        )
        with pytest.warns(ClusteringWarning, match="ignored"):
            cluster_single(x, config=config, sequential_fn=fake)
        assert fake.calls[0]["subsample"] is True

    def test_reducer_called(self, blobs):
        x, _ = blobs
        reducer = RecordingReducer(n=4)
        config = ClusterSingleConfig(main=KMEANS_K3, reduce_method="PCA", n_dims=4, is_count=True)
        result = cluster_single(x, config=config, reducer=reducer)

        assert reducer.calls == [{"method": "PCA", "n_dims": 4, "is_count": True}]
        assert result.x.shape == (60, 4)
        assert result.cluster_info["n_dims"] == 4

    def test_n_dims_without_method_warns(self, blobs):
        x, _ = blobs
        config = ClusterSingleConfig(main=KMEANS_K3, n_dims=5)
        with pytest.warns(ClusteringWarning, match="n_dims"):
            result = cluster_single(x, config=config)
        assert result.x.shape == (60, 10)

    @pytest.mark.parametrize("n_dims", [None, float("nan")])
    def test_unset_n_dims_does_not_warn(self, blobs, n_dims):
        x, _ = blobs
        config = ClusterSingleConfig(main=KMEANS_K3, n_dims=n_dims)
        with warnings.catch_warnings():
            warnings.simplefilter("error", ClusteringWarning)
            result = cluster_single(x, config=config)
        assert result.x.shape == (60, 10)

    def test_pca_variance_fraction(self, blobs):
        """n_dims in (0, 1) keeps enough PCA components for that variance."""
        x, _ = blobs
        config = ClusterSingleConfig(main=KMEANS_K3, reduce_method="PCA", n_dims=0.5)
        result = cluster_single(x, config=config)
        assert 1 <= result.x.shape[1] < x.shape[1]
        assert result.cluster_info["n_dims"] == result.x.shape[1]
        assert result.n_clusters == 3

    def test_x_only_function_ignores_diss(self, blobs, blob_diss):
        x, truth = blobs
        with pytest.warns(ClusteringWarning, match="diss is ignored"):
            result = cluster_single(x, blob_diss, config=ClusterSingleConfig(main=KMEANS_K3))
        assert result.cluster_info["input_type"] == "X"
        assert same_partition(result.labels, truth)

    @pytest.mark.parametrize("use_x,use_diss,expected", [
        (True, False, "X"),
        (False, True, "diss"),
        (True, True, "both"),
    ])
    def test_input_type(self, blobs, use_x, use_diss, expected):
        x, truth = blobs
        diss = block_dissimilarity(truth)
        config = ClusterSingleConfig(main=MainClusterParams(cluster_args={"alpha": 0.2}))
        result = cluster_single(x if use_x else None, diss if use_diss else None, config=config)
        assert result.cluster_info["input_type"] == expected
        if use_diss:
            assert same_partition(result.labels, truth)

    def test_provenance(self, blobs):
        x, _ = blobs
        result = cluster_single(x, config=ClusterSingleConfig(main=KMEANS_K3, cluster_label="km3"))
        info = result.cluster_info
        for key in ("cluster_info", "why_stop", "subsample", "sequential", "main",
                    "subsample_params", "seq_params", "reduce_method", "n_dims",
                    "input_type", "n_samples", "cluster_label"):
            assert key in info
        assert info["main"]["cluster_function"] == "kmeans"
        assert info["n_samples"] == 60
        assert info["cluster_label"] == "km3"

    def test_dataframe_input_keeps_names(self, blobs_frame):
        x, truth = blobs_frame
        result = cluster_single(x, config=ClusterSingleConfig(main=KMEANS_K3))
        series = result.to_series()
        assert list(series.index) == list(x.index)
        assert series.name == "clusterSingle"
        assert result.n_clusters == 3


# ============================================================================
# Collaborators
# ============================================================================


class TestSubsampleCoClusterer:
    """Tests for subsampling co-clustering."""

    def test_block_structure(self, blobs):
        x, truth = blobs
        params = SubsampleParams(cluster_args={"k": 3}, resamp_num=10)
        co = SubsampleCoClusterer(params).run(x=x)
        same = truth[:, None] == truth[None, :]
        assert np.all(co[same] == 1.0)
        assert np.all(co[~same] == 0.0)

    def test_in_sample(self, blobs):
        x, truth = blobs
        params = SubsampleParams(cluster_args={"k": 3}, resamp_num=20, classify_method="InSample")
        co = SubsampleCoClusterer(params).run(x=x)
        assert np.all(co[truth[:, None] != truth[None, :]] == 0.0)
        np.testing.assert_array_equal(np.diag(co), np.ones(60))

    def test_deterministic(self, blobs):
        x, _ = blobs
        params = SubsampleParams(cluster_args={"k": 4}, resamp_num=5)
        a = SubsampleCoClusterer(params).run(x=x)
        b = SubsampleCoClusterer(params).run(x=x)
        np.testing.assert_array_equal(a, b)

    def test_parallel_matches_sequential(self, blobs):
        x, _ = blobs
        params = SubsampleParams(cluster_args={"k": 4}, resamp_num=4)
        serial = SubsampleCoClusterer(params).run(x=x)
        parallel = SubsampleCoClusterer(SubsampleParams(cluster_args={"k": 4}, resamp_num=4, n_workers=2)).run(x=x)
        np.testing.assert_array_equal(serial, parallel)

    def test_diss_only_function(self, blob_diss, blobs):
        _, truth = blobs
        params = SubsampleParams("hierarchicalK", {"k": 3}, resamp_num=5)
        co = SubsampleCoClusterer(params).run(diss=blob_diss)
        assert np.all(co[truth[:, None] == truth[None, :]] == 1.0)

    def test_bad_classify_method(self, blobs):
        x, _ = blobs
        params = SubsampleParams(cluster_args={"k": 3}, classify_method="Nearest")
        with pytest.raises(ConfigurationError) as exc_info:
            SubsampleCoClusterer(params).run(x=x)
        assert exc_info.value.error_code == "C007_UNKNOWN_METHOD"

    def test_too_few_samples(self):
        params = SubsampleParams(cluster_args={"k": 1}, samp_p=0.5)
        with pytest.raises(ConfigurationError) as exc_info:
            SubsampleCoClusterer(params).run(x=np.zeros((3, 2)))
        assert exc_info.value.error_code == "C006_OUT_OF_RANGE"


class TestSequentialClusterer:
    """Tests for the sequential search."""

    def test_top_candidates(self):
        candidates = top_candidates(np.array([2, 1, 1, 3, 3, 3, -1]), 2)
        assert [c.tolist() for c in candidates] == [[3, 4, 5], [1, 2]]

    def test_finds_stable_clusters(self, blobs):
        """Two blobs are accepted, then k0 falls below k_min."""
        x, truth = blobs
        seq = SeqParams(k0=3, beta=0.8, top_can=3, remain_n=10, k_min=2)
        result = SequentialClusterer(seq).run(x=x, main=MainClusterParams("kmeans", {}))

        assert result.why_stop == STOP_MIN_K
        assert len(result.cluster_info) == 2
        found = result.labels > 0
        assert found.sum() == 40
        assert same_partition(result.labels[found], truth[found])
        assert np.all(result.labels[~found] == -1)

    def test_subsample_k_passed_each_step(self, blobs, blob_diss):
        """With subsample, k goes to the subsampling function at every step."""
        _, truth = blobs
        seen_k = []

        def fake_subsample(x, diss, params, logger=None):
            seen_k.append(params.cluster_args["k"])
            return (diss < 5.0).astype(float)

        seq = SeqParams(k0=3, beta=0.8, top_can=3, remain_n=5, k_min=1)
        result = SequentialClusterer(seq).run(
            diss=blob_diss, subsample=True, subsample_params=SubsampleParams(),
            main=MainClusterParams(), subsample_fn=fake_subsample,
        )
        assert seen_k == [3, 4, 2, 3, 1, 2]
        assert len(result.cluster_info) == 3
        assert same_partition(result.labels, truth)

    def test_stops_when_out_of_samples(self, blobs):
        x, _ = blobs
        seq = SeqParams(k0=3, beta=0.8, remain_n=100)
        result = SequentialClusterer(seq).run(x=x, main=MainClusterParams("kmeans", {}))
        assert result.why_stop == "Ran out of samples"
        assert np.all(result.labels == -1)


# ============================================================================
# Batch
# ============================================================================


class TestRunMany:
    """Tests for running several configurations."""

    def test_label_matrix(self, blobs_frame):
        x, _ = blobs_frame
        configs = [
            ClusterSingleConfig(main=KMEANS_K3, cluster_label="km"),
            ClusterSingleConfig(main=MainClusterParams("kmeans", {"k": 2}), cluster_label="km"),
        ]
        batch = run_many(x, configs=configs)
        assert isinstance(batch.labels, pd.DataFrame)
        assert list(batch.labels.columns) == ["km", "km.1"]
        assert list(batch.labels.index) == list(x.index)
        assert set(batch.cluster_info) == {"km", "km.1"}

    def test_empty(self, blobs):
        x, _ = blobs
        with pytest.raises(ConfigurationError):
            run_many(x, configs=[])

    def test_failure_propagates(self, blobs):
        x, _ = blobs
        with pytest.raises(ConfigurationError):
            run_many(x, configs=[ClusterSingleConfig(main=MainClusterParams("kmeans", {}))])

    def test_unique_labels(self):
        assert unique_labels(["a", "b", "a", "a"]) == ["a", "b", "a.1", "a.2"]
