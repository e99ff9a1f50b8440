import itertools
import unittest
from fractions import Fraction

import lib
from lib import Bound, Limits, ObliviousData, ObliviousTask, Request, Task, TaskRequest, TaskSet, \
    bound_blocking, feasible, implicit, utilization


def usage(*lengths):
    """One TaskRequest per task, task i having a single request of lengths[i]."""
    return [TaskRequest(task, Request(1, length)) for task, length in enumerate(lengths)]


class BoundAlgebra(unittest.TestCase):
    def setUp(self):
        self.a = Bound(7, 2)
        self.b = Bound(3, 1)
        self.c = Bound(11, 5)

    def test_single(self):
        self.assertEqual(Bound.single(10), Bound(length=10, count=1))

    def test_identity(self):
        self.assertEqual(self.a + Bound(), self.a)
        self.assertEqual(Bound() + self.a, self.a)

    def test_commutative_associative(self):
        self.assertEqual(self.a + self.b, self.b + self.a)
        self.assertEqual((self.a + self.b) + self.c, self.a + (self.b + self.c))

    def test_scalar_distributes(self):
        self.assertEqual(3 * (self.a + self.b), 3 * self.a + 3 * self.b)
        self.assertEqual(self.a * 3, 3 * self.a)
        self.assertEqual(self.a * 0, Bound())

    def test_iadd_in_place(self):
        x = Bound()
        y = x
        x += self.a
        self.assertIs(x, y)
        self.assertEqual(y, Bound(7, 2))

    def test_ordered_by_length_first(self):
        self.assertGreater(Bound(5, 1), Bound(4, 10))
        self.assertGreater(Bound(5, 2), Bound(5, 1))
        self.assertEqual(max(Bound(4, 10), Bound(5, 1)), Bound(5, 1))

    def test_limits_scale(self):
        limits = Limits(3, 1) * 4
        self.assertEqual((limits.total, limits.per_task), (12, 4))

    def test_unhashable(self):
        with self.assertRaises(TypeError):
            hash(Bound(1, 1))
        with self.assertRaises(TypeError):
            {Bound()}

    def test_oblivious_data_defaults(self):
        data = ObliviousData.from_total(Bound(5, 1))
        self.assertEqual(data.total, Bound(5, 1))
        self.assertEqual(data.arrival, Bound())


class RequestMerge(unittest.TestCase):
    def test_merge_sums_counts_and_keeps_max_length(self):
        req = Request(1, 5)
        req.merge(Request(2, 3))
        self.assertEqual(req, Request(3, 5))
        req.merge(Request(1, 9))
        self.assertEqual(req, Request(4, 9))


class BoundBlocking(unittest.TestCase):
    def setUp(self):
        self.usage = usage(10, 8, 5, 3)

    def test_skips_own_task(self):
        self.assertEqual(bound_blocking(self.usage, 1, Limits(2, 1)), Bound(15, 2))

    def test_per_task_limit(self):
        self.assertEqual(bound_blocking(self.usage, 1, Limits(5, 2)), Bound(33, 5))

    def test_zero_limit(self):
        self.assertEqual(bound_blocking(self.usage, 0, Limits(0, 1)), Bound())

    def test_empty(self):
        self.assertEqual(bound_blocking([], 0, Limits(4, 1)), Bound())

    def test_monotonic_in_limits(self):
        for task in range(4):
            for total, per_task in itertools.product(range(8), range(4)):
                b = bound_blocking(self.usage, task, Limits(total, per_task))
                self.assertLessEqual(b, bound_blocking(self.usage, task, Limits(total + 1, per_task)))
                self.assertLessEqual(b, bound_blocking(self.usage, task, Limits(total, per_task + 1)))

    def test_ties_may_be_permuted(self):
        a = [TaskRequest(0, Request(1, 10)), TaskRequest(1, Request(1, 10)), TaskRequest(2, Request(1, 5))]
        b = [a[1], a[0], a[2]]
        for task in range(3):
            self.assertEqual(bound_blocking(a, task, Limits(1, 1)), bound_blocking(b, task, Limits(1, 1)))

    def test_unsorted_input_underestimates(self):
        # sorting is a precondition; an unsorted usage silently yields a smaller bound
        unsorted = [TaskRequest(0, Request(1, 3)), TaskRequest(1, Request(1, 10))]
        ordered = sorted(unsorted, key=lambda tr: tr.req.length, reverse=True)
        self.assertEqual(bound_blocking(ordered, 2, Limits(1, 1)), Bound(10, 1))
        self.assertLess(bound_blocking(unsorted, 2, Limits(1, 1)), bound_blocking(ordered, 2, Limits(1, 1)))


class TaskModel(unittest.TestCase):
    def test_defaults(self):
        t = Task(3, 10)
        self.assertEqual((t.cost, t.period, t.deadline, t.priority), (3, 10, 10, 0))
        self.assertTrue(t.implicit())
        self.assertTrue(t.feasible())
        self.assertEqual(t.utilization(), Fraction(3, 10))

    def test_with_deadline_and_edf_copy(self):
        t = Task(3, 10)
        u = t.with_deadline(8).edf()
        self.assertEqual((u.deadline, u.priority), (8, 8))
        self.assertEqual((t.deadline, t.priority), (10, 0))
        self.assertFalse(u.implicit())

    def test_infeasible(self):
        self.assertFalse(Task(11, 10).feasible())

    def test_nested_collections(self):
        ts = [[Task(1, 3), Task(1, 6)], (Task(1, 2),)]
        self.assertEqual(utilization(ts), Fraction(1))
        self.assertTrue(implicit(ts))
        self.assertTrue(feasible(ts))
        ts[1] = (Task(1, 2, deadline=1),)
        self.assertFalse(implicit(ts))

    def test_task_list(self):
        a, b, c = Task(1, 3), Task(1, 6), Task(1, 2)
        self.assertEqual(lib.task_list(a), [a])
        self.assertEqual(lib.task_list(x for x in [[a, b], iter([c])]), [a, b, c])
        ts = TaskSet(0, [a, b])
        self.assertEqual(lib.task_list([ts, c]), [ts, c])

    def test_task_set(self):
        ts = TaskSet(0, [Task(1, 4), Task(1, 4)])
        self.assertEqual(len(ts), 2)
        self.assertEqual(ts[1].cost, 1)
        self.assertEqual(ts.utilization(), Fraction(1, 2))
        self.assertEqual(utilization([ts, ts]), Fraction(1))
        self.assertIn('Task Set 0', ts.description)

    def test_oblivious_task(self):
        ot = ObliviousTask(Task(3, 10), ObliviousData(total=Bound(2, 1), arrival=Bound(9, 9)))
        self.assertEqual(ot.cost, 5)
        self.assertEqual(ot.utilization(), Fraction(1, 2))
        self.assertTrue(ot.feasible())
        ot = ObliviousTask(Task(3, 10), ObliviousData(total=Bound(8, 2)))
        self.assertFalse(ot.feasible())


if __name__ == '__main__':
    unittest.main()
