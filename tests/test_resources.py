import unittest

from lib import ObliviousData, Request, Task
from protocols import FlexibleMulti, ObliviousAnalyzer
from resources import RequestKind, System


class Recorder(ObliviousAnalyzer):
    """Records what System.run() hands to an analyzer."""
    kind = RequestKind.MUTEX
    name = 'recorder'

    def __init__(self):
        self.tasks = []
        self.lengths = []
        self.posts = 0

    def pass_task(self, task, sys, by_rsrc):
        self.tasks.append(task)
        self.lengths.append([[tr.req.length for tr in usage] for usage in by_rsrc])
        return ObliviousData()

    def post(self, sys, out):
        self.posts += 1
        self.out = out


class MutexSystem(unittest.TestCase):
    def setUp(self):
        self.tasks = [Task(10, 100), Task(20, 100), Task(30, 100)]
        self.sys = System(self.tasks)

    def test_empty(self):
        self.assertEqual(self.sys.num_tasks, 3)
        self.assertEqual(self.sys.num_rsrc, 0)
        self.assertEqual(self.sys.by_rsrc(), [])
        self.assertIs(self.sys.task(1), self.tasks[1])

    def test_add_rsrc(self):
        self.assertEqual(self.sys.add_rsrc(), 0)
        self.assertEqual(self.sys.add_rsrc(), 1)
        for i in range(3):
            self.assertEqual(len(self.sys.reqs_by(i)), 2)
            self.assertEqual(self.sys.reqs_by(i)[1], Request())

    def test_add_req_merges(self):
        r = self.sys.add_rsrc()
        self.sys.add_req(0, r, Request(1, 5))
        self.sys.add_req(0, r, Request(2, 3))
        self.assertEqual(self.sys.reqs_by(0)[r], Request(3, 5))
        self.assertEqual(self.sys.reqs_by(1)[r], Request())

    def test_bad_indices(self):
        r = self.sys.add_rsrc()
        with self.assertRaises(IndexError):
            self.sys.add_req(3, r, Request(1, 1))
        with self.assertRaises(IndexError):
            self.sys.add_req(-1, r, Request(1, 1))
        with self.assertRaises(IndexError):
            self.sys.add_req(0, 1, Request(1, 1))

    def test_wrong_kind(self):
        r = self.sys.add_rsrc()
        with self.assertRaises(TypeError):
            self.sys.add_read(0, r, Request(1, 1))
        with self.assertRaises(TypeError):
            self.sys.add_write(0, r, Request(1, 1))
        with self.assertRaises(TypeError):
            self.sys.as_mutex()

    def test_by_rsrc_transposes(self):
        for _ in range(2):
            self.sys.add_rsrc()
        self.sys.add_req(2, 1, Request(1, 7))
        by_rsrc = self.sys.by_rsrc()
        self.assertEqual(len(by_rsrc), 2)
        for rsrc, usage in enumerate(by_rsrc):
            self.assertEqual([tr.task for tr in usage], [0, 1, 2])
            for tr in usage:
                self.assertIs(tr.req, self.sys.reqs_by(tr.task)[rsrc])

    def test_run_sorts_usage_and_posts_once(self):
        r = self.sys.add_rsrc()
        self.sys.add_req(0, r, Request(1, 3))
        self.sys.add_req(1, r, Request(1, 9))
        self.sys.add_req(2, r, Request(1, 5))
        rec = Recorder()
        out = self.sys.run(rec)
        self.assertEqual(rec.tasks, [0, 1, 2])
        self.assertEqual(rec.lengths[0], [[9, 5, 3]])
        self.assertEqual(rec.posts, 1)
        self.assertIs(rec.out, out)
        self.assertEqual(len(out), 3)
        # stored requests keep task order
        self.assertEqual([tr.task for tr in self.sys.by_rsrc()[0]], [0, 1, 2])

    def test_run_rejects_other_kind(self):
        rw = System(self.tasks, RequestKind.READ_WRITE)
        with self.assertRaises(TypeError):
            rw.run(FlexibleMulti())

    def test_run_rejects_analyzer_without_kind(self):
        class Unbound(Recorder):
            kind = None

        with self.assertRaisesRegex(TypeError, 'None'):
            self.sys.run(Unbound())


class ReadWriteSystem(unittest.TestCase):
    def setUp(self):
        self.tasks = [Task(10, 100), Task(20, 100)]
        self.sys = System(self.tasks, RequestKind.READ_WRITE)
        self.r = self.sys.add_rsrc()

    def test_add_read_write(self):
        self.sys.add_read(0, self.r, Request(2, 5))
        self.sys.add_write(0, self.r, Request(1, 7))
        self.sys.add_read(0, self.r, Request(1, 4))
        slot = self.sys.reqs_by(0)[self.r]
        self.assertEqual(slot.read, Request(3, 5))
        self.assertEqual(slot.write, Request(1, 7))
        with self.assertRaises(TypeError):
            self.sys.add_req(0, self.r, Request(1, 1))
        with self.assertRaises(IndexError):
            self.sys.add_write(2, self.r, Request(1, 1))

    def test_by_rsrc_transposes_halves_independently(self):
        self.sys.add_read(1, self.r, Request(1, 3))
        usage = self.sys.by_rsrc()[0]
        self.assertEqual([tr.task for tr in usage.read], [0, 1])
        self.assertEqual([tr.task for tr in usage.write], [0, 1])
        for task in range(2):
            self.assertIs(usage.read[task].req, self.sys.reqs_by(task)[0].read)
            self.assertIs(usage.write[task].req, self.sys.reqs_by(task)[0].write)

    def test_as_mutex(self):
        r2 = self.sys.add_rsrc()
        self.sys.add_read(0, self.r, Request(2, 5))
        self.sys.add_write(0, self.r, Request(1, 7))
        self.sys.add_read(1, r2, Request(4, 2))
        mutex = self.sys.as_mutex()
        self.assertIs(mutex.kind, RequestKind.MUTEX)
        self.assertEqual(mutex.tasks, self.sys.tasks)
        self.assertEqual(mutex.num_rsrc, 2)
        self.assertEqual(mutex.reqs_by(0)[self.r], Request(3, 7))
        self.assertEqual(mutex.reqs_by(1)[r2], Request(4, 2))
        self.assertEqual(mutex.reqs_by(1)[self.r], Request())
        # the original system is left untouched
        self.assertEqual(self.sys.reqs_by(0)[self.r].read, Request(2, 5))

    def test_as_mutex_preserves_counts(self):
        self.sys.add_read(0, self.r, Request(3, 1))
        self.sys.add_write(0, self.r, Request(2, 1))
        self.sys.add_write(1, self.r, Request(5, 4))
        mutex = self.sys.as_mutex()
        for task in range(2):
            pair = self.sys.reqs_by(task)[self.r]
            self.assertEqual(mutex.reqs_by(task)[self.r].num, pair.read.num + pair.write.num)


if __name__ == '__main__':
    unittest.main()
