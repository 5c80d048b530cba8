"""
Tests for variant configuration and sticky weighted assignment.

Covers:
- select_weighted_variant: zero weights never chosen, empty/zero total -> None
- Assignment stickiness across rebalances
- Weighted split over many recipients
- Concurrent first assignment of the same recipient
- Degraded assignment when the insert fails
- Weight and control invariants on create / rebalance
- apply_winner
"""

import asyncio
from datetime import datetime, timezone
from typing import Optional
from unittest.mock import Mock

import numpy as np
import pytest

from send_governance.core.errors import StorageUnavailableError, ValidationFailedError
from send_governance.models import Variant, VariantCreate, VariantStatus, VariantWeight
from send_governance.services.variants import VariantService, select_weighted_variant
from send_governance.tests.fakes import FailingVariantStore


pytestmark = pytest.mark.asyncio

CAMPAIGN = 'cmp_1'


def make_variant(
    variant_id: str,
    weight: int,
    is_control: bool = False,
    status: VariantStatus = VariantStatus.ACTIVE,
    campaign_id: str = CAMPAIGN,
    minute: int = 0,
) -> Variant:
    return Variant(
        id=variant_id,
        campaign_id=campaign_id,
        workspace_id='ws_1',
        name=f'Variant {variant_id}',
        variant_key=variant_id.upper(),
        is_control=is_control,
        subject_template='Hello {{first_name}}',
        body_template='Body',
        weight=weight,
        status=status,
        created_at=datetime(2026, 3, 1, 12, minute, tzinfo=timezone.utc),
    )


def create_request(key: str, weight: Optional[int] = None, is_control: bool = False) -> VariantCreate:
    return VariantCreate(
        name=f'Variant {key}',
        variant_key=key,
        subject_template='Subject',
        body_template='Body',
        weight=weight,
        is_control=is_control,
    )


class TestSelectWeightedVariant:

    async def test_empty_list_returns_none(self, rng) -> None:
        assert select_weighted_variant([], rng) is None

    async def test_zero_total_returns_none(self, rng) -> None:
        variants = [make_variant('a', 0), make_variant('b', 0)]

        assert select_weighted_variant(variants, rng) is None

    async def test_zero_weight_never_selected(self, rng) -> None:
        variants = [make_variant('a', 0), make_variant('b', 100), make_variant('c', 0)]

        picks = {select_weighted_variant(variants, rng).id for _ in range(500)}

        assert picks == {'b'}

    async def test_cumulative_walk_boundaries(self) -> None:
        variants = [make_variant('a', 30), make_variant('b', 70)]

        low = Mock()
        low.uniform.return_value = 29.999
        high = Mock()
        high.uniform.return_value = 30.0

        assert select_weighted_variant(variants, low).id == 'a'
        assert select_weighted_variant(variants, high).id == 'b'


class TestAssignVariant:

    async def test_no_active_variants_returns_none(self, variant_service, variant_store) -> None:
        variant_store.seed(make_variant('a', 50, status=VariantStatus.PAUSED))

        assert await variant_service.assign_variant('lead_1', CAMPAIGN) is None
        assert variant_store.assignments == {}

    async def test_assignment_is_sticky_across_rebalance(
        self, variant_service, variant_store
    ) -> None:
        variant_store.seed(make_variant('a', 50, minute=0), make_variant('b', 50, minute=1))

        first = await variant_service.assign_variant('lead_1', CAMPAIGN)
        other = 'b' if first.id == 'a' else 'a'
        await variant_service.update_variant_weights(
            CAMPAIGN,
            [VariantWeight(variant_id=first.id, weight=0), VariantWeight(variant_id=other, weight=100)],
        )

        for _ in range(5):
            again = await variant_service.assign_variant('lead_1', CAMPAIGN)
            assert again.id == first.id

    @pytest.mark.slow
    async def test_even_split_over_many_recipients(self, variant_service, variant_store) -> None:
        variant_store.seed(make_variant('a', 50, minute=0), make_variant('b', 50, minute=1))

        counts = {'a': 0, 'b': 0}
        for index in range(10_000):
            variant = await variant_service.assign_variant(f'lead_{index}', CAMPAIGN)
            counts[variant.id] += 1

        share = counts['a'] / 10_000
        assert 0.47 <= share <= 0.53
        assert len(variant_store.assignments) == 10_000

    async def test_concurrent_first_assignment_agrees(self, variant_store, clock) -> None:
        variant_store.seed(make_variant('a', 50, minute=0), make_variant('b', 50, minute=1))

        for seed in range(20):
            service = VariantService(variant_store, clock=clock, rng=np.random.default_rng(seed))
            lead = f'race_lead_{seed}'

            results = await asyncio.gather(
                *[service.assign_variant(lead, CAMPAIGN) for _ in range(4)]
            )

            stored = variant_store.assignments[lead].variant_id
            assert {variant.id for variant in results} == {stored}

    async def test_insert_failure_serves_first_variant(
        self, variant_service, variant_store, caplog
    ) -> None:
        variant_store.seed(make_variant('a', 10, minute=0), make_variant('b', 90, minute=1))
        variant_store.fail_assignment_insert = True

        variant = await variant_service.assign_variant('lead_1', CAMPAIGN)

        assert variant.id == 'a'
        assert variant_store.assignments == {}
        assert 'serving first variant' in caplog.text

    async def test_read_failure_propagates(self, clock, rng) -> None:
        service = VariantService(FailingVariantStore(), clock=clock, rng=rng)

        with pytest.raises(StorageUnavailableError):
            await service.assign_variant('lead_1', CAMPAIGN)

    async def test_get_assigned_variant(self, variant_service, variant_store) -> None:
        variant_store.seed(make_variant('a', 100))

        assert await variant_service.get_assigned_variant('lead_1') is None
        assigned = await variant_service.assign_variant('lead_1', CAMPAIGN)
        assert (await variant_service.get_assigned_variant('lead_1')).id == assigned.id


class TestVariantConfiguration:

    async def test_create_variant_defaults_weight(self, variant_service) -> None:
        variant = await variant_service.create_variant(CAMPAIGN, 'ws_1', create_request('A'))

        assert variant.weight == 50
        assert variant.status == VariantStatus.ACTIVE
        assert [v.id for v in await variant_service.get_variants(CAMPAIGN)] == [variant.id]

    async def test_create_variant_rejects_weight_overflow(self, variant_service) -> None:
        await variant_service.create_variant(CAMPAIGN, 'ws_1', create_request('A', weight=60))

        with pytest.raises(ValidationFailedError):
            await variant_service.create_variant(CAMPAIGN, 'ws_1', create_request('B', weight=50))

        assert len(await variant_service.get_variants(CAMPAIGN)) == 1

    async def test_paused_variants_do_not_count_toward_weight(
        self, variant_service, variant_store
    ) -> None:
        variant_store.seed(make_variant('old', 80, status=VariantStatus.PAUSED))

        created = await variant_service.create_variant(CAMPAIGN, 'ws_1', create_request('B', weight=100))

        assert created.weight == 100

    async def test_concurrent_creates_respect_weight_ceiling(self, variant_service) -> None:
        results = await asyncio.gather(
            *[
                variant_service.create_variant(CAMPAIGN, 'ws_1', create_request(key, weight=40))
                for key in ('A', 'B', 'C')
            ],
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, ValidationFailedError)]
        variants = await variant_service.get_variants(CAMPAIGN)
        assert len(failures) == 1
        assert sum(v.weight for v in variants) == 80

    async def test_second_control_rejected(self, variant_service) -> None:
        await variant_service.create_variant(
            CAMPAIGN, 'ws_1', create_request('A', weight=50, is_control=True)
        )

        with pytest.raises(ValidationFailedError):
            await variant_service.create_variant(
                CAMPAIGN, 'ws_1', create_request('B', weight=50, is_control=True)
            )

    async def test_archived_control_does_not_block_new_control(
        self, variant_service, variant_store
    ) -> None:
        variant_store.seed(make_variant('old', 0, is_control=True, status=VariantStatus.ARCHIVED))

        created = await variant_service.create_variant(
            CAMPAIGN, 'ws_1', create_request('A', weight=50, is_control=True)
        )

        assert created.is_control is True

    @pytest.mark.parametrize('weights', [(50, 49), (60, 50)])
    async def test_rebalance_requires_total_of_100(
        self, variant_service, variant_store, weights
    ) -> None:
        variant_store.seed(make_variant('a', 50, minute=0), make_variant('b', 50, minute=1))

        with pytest.raises(ValidationFailedError):
            await variant_service.update_variant_weights(
                CAMPAIGN,
                [
                    VariantWeight(variant_id='a', weight=weights[0]),
                    VariantWeight(variant_id='b', weight=weights[1]),
                ],
            )

        assert [v.weight for v in variant_store.variants] == [50, 50]

    async def test_rebalance_rejects_foreign_variant(self, variant_service, variant_store) -> None:
        variant_store.seed(
            make_variant('a', 50),
            make_variant('x', 50, campaign_id='cmp_other'),
        )

        with pytest.raises(ValidationFailedError):
            await variant_service.update_variant_weights(
                CAMPAIGN,
                [VariantWeight(variant_id='a', weight=50), VariantWeight(variant_id='x', weight=50)],
            )

        assert [v.weight for v in variant_store.variants] == [50, 50]

    async def test_rebalance_rejects_duplicates(self, variant_service, variant_store) -> None:
        variant_store.seed(make_variant('a', 50))

        with pytest.raises(ValidationFailedError):
            await variant_service.update_variant_weights(
                CAMPAIGN,
                [VariantWeight(variant_id='a', weight=50), VariantWeight(variant_id='a', weight=50)],
            )

    async def test_rebalance_applies_all_weights(self, variant_service, variant_store) -> None:
        variant_store.seed(make_variant('a', 50, minute=0), make_variant('b', 50, minute=1))

        await variant_service.update_variant_weights(
            CAMPAIGN,
            [VariantWeight(variant_id='a', weight=20), VariantWeight(variant_id='b', weight=80)],
        )

        assert {v.id: v.weight for v in variant_store.variants} == {'a': 20, 'b': 80}


class TestApplyWinner:

    async def test_winner_takes_all_traffic(self, variant_service, variant_store) -> None:
        variant_store.seed(
            make_variant('a', 50, is_control=True, minute=0),
            make_variant('b', 50, minute=1),
            make_variant('c', 0, status=VariantStatus.ARCHIVED, minute=2),
        )

        await variant_service.apply_winner(CAMPAIGN, 'b')

        by_id = {v.id: v for v in variant_store.variants}
        assert (by_id['b'].weight, by_id['b'].status) == (100, VariantStatus.ACTIVE)
        assert (by_id['a'].weight, by_id['a'].status) == (0, VariantStatus.PAUSED)
        assert by_id['c'].status == VariantStatus.ARCHIVED

    async def test_new_recipients_get_winner(self, variant_service, variant_store) -> None:
        variant_store.seed(make_variant('a', 50, minute=0), make_variant('b', 50, minute=1))

        await variant_service.apply_winner(CAMPAIGN, 'a')

        for index in range(20):
            assert (await variant_service.assign_variant(f'lead_{index}', CAMPAIGN)).id == 'a'

    async def test_unknown_winner_rejected(self, variant_service, variant_store) -> None:
        variant_store.seed(make_variant('a', 100))

        with pytest.raises(ValidationFailedError):
            await variant_service.apply_winner(CAMPAIGN, 'missing')

        assert variant_store.variants[0].weight == 100
