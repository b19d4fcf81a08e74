"""
Clustering tests.
"""

from types import SimpleNamespace

import numpy as np
import pytest

from agents.clustering import (
    ClusteringAgent, compute_centroid, cosine_similarity, form_candidates,
)


def group_a(i):
    return [1.0, 0.01 * (i % 3), 0.0, 0.0]


def group_b(i):
    return [0.0, 0.0, 1.0, 0.01 * (i % 3)]


class TestCosineSimilarity:
    def test_symmetric(self):
        a, b = [1.0, 2.0, 3.0], [3.0, -1.0, 0.5]
        assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))

    def test_self_similarity_is_one(self):
        assert cosine_similarity([0.3, 0.4, 0.5], [0.3, 0.4, 0.5]) == pytest.approx(1.0)

    def test_mismatched_lengths_are_zero(self):
        assert cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0]) == 0.0

    def test_zero_vector_is_zero(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0

    def test_orthogonal_is_zero(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_centroid_is_mean(self):
        centroid = compute_centroid([np.array([0.0, 2.0]), np.array([2.0, 0.0])])
        assert centroid.tolist() == [1.0, 1.0]


class TestFormCandidates:
    def test_separates_orthogonal_groups(self, add_items):
        items = add_items(["a"] * 6, vector=group_a) + add_items(["b"] * 4, vector=group_b)
        candidates = form_candidates(items, threshold=0.65, rng=np.random.default_rng(0))
        assert sorted(c.size for c in candidates) == [4, 6]

    def test_centroid_tracks_members(self, add_items):
        items = add_items(["a"] * 3, vector=[2.0, 0.0])
        [candidate] = form_candidates(items, rng=np.random.default_rng(1))
        assert candidate.centroid.tolist() == [2.0, 0.0]

    def test_seed_pins_assignment(self, add_items):
        items = add_items(["x"] * 12, vector=lambda i: [1.0, i * 0.3])

        def run(seed):
            cands = form_candidates(items, rng=np.random.default_rng(seed))
            return [sorted(m.content_id for m in c.members) for c in cands]

        assert run(42) == run(42)

    def test_item_joins_most_similar_candidate(self, add_items):
        items = add_items(["a", "b", "c"], vector=lambda i: [[1.0, 0.0], [0.0, 1.0], [0.7, 0.714]][i])
        in_order = SimpleNamespace(permutation=lambda n: np.arange(n))

        first, second = form_candidates(items, threshold=0.65, rng=in_order)

        # c clears the threshold for both, but is closer to b
        assert [m.content_id for m in first.members] == [items[0].content_id]
        assert [m.content_id for m in second.members] == [items[1].content_id, items[2].content_id]


class TestClusteringAgent:
    def test_too_few_items_returns_zero(self, store, add_items):
        add_items(["a"] * 5, vector=group_a)
        result = ClusteringAgent(store, min_cluster_size=20).run()
        assert result == {"clusters_created": 0, "items_assigned": 0}
        assert store.list_clusters() == []

    def test_creates_cluster_from_similar_items(self, store, add_items):
        add_items(["ghosted again"] * 25, vector=group_a)
        result = ClusteringAgent(store, seed=7).run()

        assert result == {"clusters_created": 1, "items_assigned": 25}
        [cluster] = store.list_clusters()
        assert cluster.content_count_total == 25
        assert cluster.content_count_last_7d == 25
        assert cluster.needs_label
        assert cluster.growth_score == pytest.approx(4.29)
        assert len(store.list_memberships(cluster.cluster_id)) == 25

    def test_small_candidates_never_persisted(self, store, add_items):
        add_items(["a"] * 22, vector=group_a)
        add_items(["b"] * 5, vector=group_b)
        result = ClusteringAgent(store, seed=3).run()
        assert result["clusters_created"] == 1
        assert store.list_clusters()[0].content_count_total == 22

    def test_last_7d_counts_only_recent_members(self, store, add_items):
        add_items(["recent"] * 15, vector=group_a, days_ago=2)
        add_items(["older"] * 10, vector=group_a, days_ago=20)
        ClusteringAgent(store, seed=1).run()
        [cluster] = store.list_clusters()
        assert cluster.content_count_total == 25
        assert cluster.content_count_last_7d == 15
        assert cluster.content_count_last_7d <= cluster.content_count_total

    def test_source_breakdown_sums_to_one(self, store, add_items):
        from models.schemas import Platform
        add_items(["r"] * 15, vector=group_a, platform=Platform.REDDIT)
        add_items(["y"] * 10, vector=group_a, platform=Platform.YOUTUBE)
        ClusteringAgent(store, seed=1).run()
        [cluster] = store.list_clusters()
        fractions = cluster.source_breakdown.to_dict()
        assert fractions == {"reddit": 0.6, "youtube": 0.4}
        assert sum(fractions.values()) == pytest.approx(1.0, abs=0.05)

    def test_rerun_merges_into_existing_cluster(self, store, add_items):
        add_items(["first wave"] * 20, vector=group_a)
        ClusteringAgent(store, seed=5).run()
        add_items(["second wave"] * 5, vector=group_a)

        result = ClusteringAgent(store, seed=5).run()

        assert result["clusters_created"] == 0
        [cluster] = store.list_clusters()
        assert cluster.content_count_total == 25
        assert len(store.list_memberships(cluster.cluster_id)) == 25

    def test_memberships_score_against_final_centroid(self, store, add_items):
        add_items(["same"] * 20, vector=[0.0, 3.0])
        ClusteringAgent(store, seed=2).run()
        [cluster] = store.list_clusters()
        scores = [m.similarity_score for m in store.list_memberships(cluster.cluster_id)]
        assert all(s == pytest.approx(1.0) for s in scores)

    def test_distinct_groups_create_distinct_clusters(self, store, add_items):
        add_items(["a"] * 20, vector=group_a)
        add_items(["b"] * 20, vector=group_b)
        result = ClusteringAgent(store, seed=9).run()
        assert result == {"clusters_created": 2, "items_assigned": 40}
