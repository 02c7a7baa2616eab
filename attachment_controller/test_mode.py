import unittest
from .errors import ConfigurationError
from .mode import AttachmentSpec, Kind, select_mode

class TestSelectMode(unittest.TestCase):
    def test_load_balancer_name(self):
        spec = AttachmentSpec(group_name='asg-1', load_balancer_name='lb-a')
        self.assertEqual(select_mode(spec), (Kind.BY_NAME, 'lb-a'))

    def test_target_group_arn(self):
        spec = AttachmentSpec(group_name='asg-1', target_group_id='tg-123')
        self.assertEqual(select_mode(spec), (Kind.BY_TARGET_GROUP_ID, 'tg-123'))

    def test_legacy_target_group_arn_is_an_alias(self):
        spec = AttachmentSpec(group_name='asg-1', legacy_target_group_id='tg-123')
        self.assertEqual(select_mode(spec), (Kind.BY_TARGET_GROUP_ID, 'tg-123'))

    def test_no_membership_field(self):
        with self.assertRaises(ConfigurationError) as context:
            select_mode(AttachmentSpec(group_name='asg-1'))
        self.assertIn('asg-1', str(context.exception))
        self.assertIn('set: none', str(context.exception))

    def test_several_membership_fields(self):
        specs = [
            AttachmentSpec(group_name='asg-1', load_balancer_name='lb-a', target_group_id='tg-123'),
            AttachmentSpec(group_name='asg-1', target_group_id='tg-123', legacy_target_group_id='tg-123'),
            AttachmentSpec(group_name='asg-1', load_balancer_name='lb-a', target_group_id='tg-123',
                           legacy_target_group_id='tg-456'),
        ]
        for spec in specs:
            with self.subTest(spec=spec):
                with self.assertRaises(ConfigurationError):
                    select_mode(spec)

class TestAttachmentSpec(unittest.TestCase):
    def test_from_manifest(self):
        spec = AttachmentSpec.from_manifest({
            'autoScalingGroupName': 'asg-1',
            'targetGroupArn': 'tg-123',
            'region': 'eu-west-1'
        })
        self.assertEqual(spec, AttachmentSpec(group_name='asg-1', target_group_id='tg-123', region='eu-west-1'))

    def test_empty_strings_count_as_unset(self):
        spec = AttachmentSpec.from_manifest({
            'autoScalingGroupName': 'asg-1',
            'loadBalancerName': '',
            'albTargetGroupArn': 'tg-123'
        })
        self.assertIsNone(spec.load_balancer_name)
        self.assertEqual(select_mode(spec), (Kind.BY_TARGET_GROUP_ID, 'tg-123'))

    def test_group_name_is_required(self):
        with self.assertRaises(ConfigurationError):
            AttachmentSpec.from_manifest({'loadBalancerName': 'lb-a'})

if __name__ == '__main__':
    unittest.main()
