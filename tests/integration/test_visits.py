"""Visit lifecycle: creation, transitions, ownership and validation order."""
from datetime import date, timedelta

import pytest

from tradeflow.exceptions import (
    ErrorCode, ForbiddenError, InvalidStatusTransitionError, NotFoundError, ValidationError
)
from tradeflow.models import Visit
from tradeflow.services import visit_service

TODAY = date(2026, 5, 11)
REP_ID = 2001
OTHER_REP_ID = 2002


def _plan(session, tenant, customer, user_id=REP_ID, role='sales_rep', **extra):
    payload = {'customer_id': customer.id, 'planned_date': (TODAY + timedelta(days=1)).isoformat()}
    payload.update(extra)
    return visit_service.create_visit(session, tenant.id, user_id, role, payload, today=TODAY)


class TestCreateVisit:

    def test_scheduled_visit(self, session, tenant1, customer1):
        visit = _plan(session, tenant1, customer1, planned_time='09:30:00', notes=' Bring samples ')
        assert visit.status == 'planned'
        assert visit.visit_type == 'scheduled'
        assert visit.planned_date == TODAY + timedelta(days=1)
        assert visit.planned_time == '09:30'
        assert visit.notes == 'Bring samples'
        assert visit.sales_rep_id == REP_ID
        assert visit.started_at is None

    def test_quick_visit_is_completed(self, session, tenant1, customer1):
        visit = visit_service.create_visit(session, tenant1.id, REP_ID, 'sales_rep', {
            'mode': 'quick', 'customer_id': customer1.id, 'outcome': 'order_placed',
            'photos': ['https://cdn.example.com/1.jpg'], 'latitude': 41.311081, 'longitude': 69.240562,
        }, today=TODAY)

        assert visit.status == 'completed'
        assert visit.visit_type == 'ad_hoc'
        assert visit.planned_date == TODAY
        assert visit.started_at is not None
        assert visit.completed_at == visit.started_at
        assert visit.outcome == 'order_placed'
        assert visit.photos == ['https://cdn.example.com/1.jpg']

    def test_supervisor_assigns_rep(self, session, tenant1, customer1):
        visit = _plan(session, tenant1, customer1, user_id=9, role='supervisor', sales_rep_id=OTHER_REP_ID)
        assert visit.sales_rep_id == OTHER_REP_ID

    def test_rep_cannot_assign_other_rep(self, session, tenant1, customer1):
        visit = _plan(session, tenant1, customer1, sales_rep_id=OTHER_REP_ID)
        assert visit.sales_rep_id == REP_ID

    def test_supervisor_assigns_non_numeric_rep(self, session, tenant1, customer1):
        with pytest.raises(ValidationError) as exc:
            _plan(session, tenant1, customer1, user_id=9, role='supervisor', sales_rep_id='abc')
        assert exc.value.code == ErrorCode.VALIDATION_ERROR
        assert exc.value.payload == {'field': 'sales_rep_id'}
        assert session.query(Visit).count() == 0

    @pytest.mark.parametrize('payload, code', [
        ({'mode': 'walk-in'}, ErrorCode.INVALID_MODE),
        ({'visit_type': 'surprise'}, ErrorCode.INVALID_VISIT_TYPE),
        ({'mode': 'quick', 'outcome': 'maybe'}, ErrorCode.INVALID_OUTCOME),
        ({'planned_date': 'garbage'}, ErrorCode.MISSING_REQUIRED_FIELD),
        ({'mode': 'quick', 'customer_id': 1}, ErrorCode.MISSING_REQUIRED_FIELD),
        ({'customer_id': 1, 'planned_date': 'garbage'}, ErrorCode.INVALID_DATE),
        ({'customer_id': 1, 'planned_date': '2026-05-10'}, ErrorCode.INVALID_DATE),
        ({'customer_id': 1, 'planned_date': '2026-05-12', 'planned_time': '7pm'}, ErrorCode.INVALID_DATE),
    ])
    def test_validation_order(self, session, tenant1, payload, code):
        with pytest.raises(ValidationError) as exc:
            visit_service.create_visit(session, tenant1.id, REP_ID, 'sales_rep', payload, today=TODAY)
        assert exc.value.code == code
        assert session.query(Visit).count() == 0

    def test_planning_for_today_is_allowed(self, session, tenant1, customer1):
        visit = _plan(session, tenant1, customer1, planned_date=TODAY.isoformat())
        assert visit.planned_date == TODAY

    def test_customer_of_other_tenant(self, session, tenant1, tenant2, customer1):
        with pytest.raises(NotFoundError):
            visit_service.create_visit(session, tenant2.id, REP_ID, 'sales_rep', {
                'customer_id': customer1.id, 'planned_date': '2026-05-12'
            }, today=TODAY)


class TestVisitTransitions:

    def test_full_lifecycle(self, session, tenant1, customer1):
        visit = _plan(session, tenant1, customer1)

        visit = visit_service.start_visit(session, tenant1.id, visit.id, REP_ID, 'sales_rep',
                                          latitude='41.3', longitude='69.2')
        assert visit.status == 'in_progress'
        assert visit.started_at is not None

        visit = visit_service.complete_visit(session, tenant1.id, visit.id, REP_ID, 'sales_rep',
                                             outcome='follow_up', outcome_notes='Call next week',
                                             follow_up_date='2026-05-20')
        assert visit.status == 'completed'
        assert visit.outcome == 'follow_up'
        assert visit.completed_at is not None
        assert visit.follow_up_date == date(2026, 5, 20)

    def test_start_twice(self, session, tenant1, customer1):
        visit = _plan(session, tenant1, customer1)
        visit_service.start_visit(session, tenant1.id, visit.id, REP_ID, 'sales_rep')
        with pytest.raises(InvalidStatusTransitionError) as exc:
            visit_service.start_visit(session, tenant1.id, visit.id, REP_ID, 'sales_rep')
        assert exc.value.code == ErrorCode.INVALID_STATUS_TRANSITION
        assert exc.value.status_code == 409

    def test_lost_race_reports_stored_status(self, session, tenant1, customer1):
        visit = _plan(session, tenant1, customer1)
        # cancelled elsewhere; the loaded instance still says planned
        session.query(Visit).filter(Visit.id == visit.id).update(
            {Visit.status: 'cancelled'}, synchronize_session=False
        )
        session.commit()
        with pytest.raises(InvalidStatusTransitionError) as exc:
            visit_service.start_visit(session, tenant1.id, visit.id, REP_ID, 'sales_rep')
        assert 'cancelled' in exc.value.message

    def test_complete_twice_keeps_first_outcome(self, session, tenant1, customer1):
        visit = _plan(session, tenant1, customer1)
        visit_service.start_visit(session, tenant1.id, visit.id, REP_ID, 'sales_rep')
        visit_service.complete_visit(session, tenant1.id, visit.id, REP_ID, 'sales_rep', outcome='no_order')

        with pytest.raises(InvalidStatusTransitionError):
            visit_service.complete_visit(session, tenant1.id, visit.id, REP_ID, 'sales_rep', outcome='order_placed')
        session.refresh(visit)
        assert visit.outcome == 'no_order'

    def test_complete_planned_visit(self, session, tenant1, customer1):
        visit = _plan(session, tenant1, customer1)
        with pytest.raises(InvalidStatusTransitionError):
            visit_service.complete_visit(session, tenant1.id, visit.id, REP_ID, 'sales_rep', outcome='no_order')

    def test_outcome_checked_before_status(self, session, tenant1, customer1):
        visit = _plan(session, tenant1, customer1)
        with pytest.raises(ValidationError) as exc:
            visit_service.complete_visit(session, tenant1.id, visit.id, REP_ID, 'sales_rep', outcome='great')
        assert exc.value.code == ErrorCode.INVALID_OUTCOME

        with pytest.raises(ValidationError) as exc:
            visit_service.complete_visit(session, tenant1.id, visit.id, REP_ID, 'sales_rep', outcome=None)
        assert exc.value.code == ErrorCode.MISSING_REQUIRED_FIELD

    def test_cancel_in_progress_clears_start(self, session, tenant1, customer1):
        visit = _plan(session, tenant1, customer1)
        visit_service.start_visit(session, tenant1.id, visit.id, REP_ID, 'sales_rep')
        visit = visit_service.cancel_visit(session, tenant1.id, visit.id, REP_ID, 'sales_rep', reason='Shop closed')
        assert visit.status == 'cancelled'
        assert visit.started_at is None
        assert visit.cancel_reason == 'Shop closed'

    def test_cancel_completed(self, session, tenant1, customer1):
        visit = visit_service.create_visit(session, tenant1.id, REP_ID, 'sales_rep', {
            'mode': 'quick', 'customer_id': customer1.id, 'outcome': 'no_order'
        }, today=TODAY)
        with pytest.raises(InvalidStatusTransitionError):
            visit_service.cancel_visit(session, tenant1.id, visit.id, REP_ID, 'sales_rep')

    def test_other_rep_forbidden(self, session, tenant1, customer1):
        visit = _plan(session, tenant1, customer1)
        with pytest.raises(ForbiddenError):
            visit_service.start_visit(session, tenant1.id, visit.id, OTHER_REP_ID, 'sales_rep')

    def test_supervisor_may_act(self, session, tenant1, customer1):
        visit = _plan(session, tenant1, customer1)
        visit = visit_service.cancel_visit(session, tenant1.id, visit.id, 9, 'supervisor')
        assert visit.status == 'cancelled'

    def test_reschedule(self, session, tenant1, customer1):
        visit = _plan(session, tenant1, customer1)
        visit = visit_service.reschedule_visit(session, tenant1.id, visit.id, REP_ID, 'sales_rep', {
            'planned_date': '2026-05-15', 'planned_time': '14:00'
        }, today=TODAY)
        assert visit.planned_date == date(2026, 5, 15)
        assert visit.planned_time == '14:00'

    def test_reschedule_started_visit(self, session, tenant1, customer1):
        visit = _plan(session, tenant1, customer1)
        visit_service.start_visit(session, tenant1.id, visit.id, REP_ID, 'sales_rep')
        with pytest.raises(InvalidStatusTransitionError):
            visit_service.reschedule_visit(session, tenant1.id, visit.id, REP_ID, 'sales_rep',
                                           {'planned_date': '2026-05-15'}, today=TODAY)


class TestVisitQueries:

    def test_today_stats_scoped_to_rep(self, session, tenant1, customer1, customer2):
        day = TODAY + timedelta(days=1)
        first = _plan(session, tenant1, customer1, planned_time='10:00')
        _plan(session, tenant1, customer2, planned_time='08:00')
        _plan(session, tenant1, customer2, user_id=OTHER_REP_ID)
        visit_service.start_visit(session, tenant1.id, first.id, REP_ID, 'sales_rep')

        today = visit_service.get_today_visits(session, tenant1.id, REP_ID, 'sales_rep', day=day)
        assert today['stats'] == {'total': 2, 'planned': 1, 'in_progress': 1, 'completed': 0, 'cancelled': 0}
        assert [v.planned_time for v in today['visits']] == ['08:00', '10:00']

        everyone = visit_service.get_today_visits(session, tenant1.id, 9, 'supervisor', day=day)
        assert everyone['stats']['total'] == 3

    def test_dashboard_stats(self, session, tenant1, customer1, customer2):
        """TODAY is a Monday; the week counted from Sunday 2026-05-10."""
        for outcome in ('order_placed', 'no_order'):
            visit_service.create_visit(session, tenant1.id, REP_ID, 'sales_rep', {
                'mode': 'quick', 'customer_id': customer1.id, 'outcome': outcome
            }, today=TODAY)
        started = _plan(session, tenant1, customer2, planned_date=TODAY.isoformat())
        visit_service.start_visit(session, tenant1.id, started.id, REP_ID, 'sales_rep')
        _plan(session, tenant1, customer2)
        visit_service.create_visit(session, tenant1.id, REP_ID, 'sales_rep', {
            'customer_id': customer1.id, 'planned_date': '2026-05-05'
        }, today=date(2026, 5, 1))
        _plan(session, tenant1, customer1, user_id=OTHER_REP_ID, planned_date=TODAY.isoformat())

        stats = visit_service.get_visit_stats(session, tenant1.id, REP_ID, 'sales_rep', day=TODAY)
        assert stats['today'] == {'total': 3, 'completed': 2, 'in_progress': 1}
        assert stats['this_week'] == {
            'week_start': date(2026, 5, 10), 'total': 4, 'completed': 2, 'orders_placed': 1
        }

        everyone = visit_service.get_visit_stats(session, tenant1.id, 9, 'supervisor', day=TODAY)
        assert everyone['today']['total'] == 4

    def test_list_filters(self, session, tenant1, customer1, customer2):
        _plan(session, tenant1, customer1)
        _plan(session, tenant1, customer2, planned_date='2026-05-20')

        visits, total = visit_service.list_visits(session, tenant1.id, REP_ID, 'sales_rep', customer_id=customer2.id)
        assert total == 1
        assert visits[0].customer_id == customer2.id

        visits, total = visit_service.list_visits(session, tenant1.id, REP_ID, 'sales_rep',
                                                  date_from=date(2026, 5, 15))
        assert total == 1

        with pytest.raises(ValidationError):
            visit_service.list_visits(session, tenant1.id, REP_ID, 'sales_rep', status='lost')
