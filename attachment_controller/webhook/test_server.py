import unittest
from .server import app, validate_attachment

def admission_review(obj, operation="CREATE", old=None):
    request = {
        "uid": "1234",
        "operation": operation,
        "object": obj
    }
    if old is not None:
        request["oldObject"] = old
    return {
        "apiVersion": "admission.k8s.io/v1",
        "kind": "AdmissionReview",
        "request": request
    }

def attachment(**spec):
    return {"metadata": {"name": "web-attachment"}, "spec": spec}

class TestValidateAttachment(unittest.TestCase):
    def test_valid_spec(self):
        errors, warnings = validate_attachment(
            attachment(autoScalingGroupName="asg-1", loadBalancerName="lb-a"), {}, "CREATE"
        )
        self.assertEqual(errors, [])
        self.assertEqual(warnings, [])

    def test_missing_group_name(self):
        errors, _ = validate_attachment(attachment(loadBalancerName="lb-a"), {}, "CREATE")
        self.assertEqual(errors, ["autoScalingGroupName is required"])

    def test_membership_fields_are_exclusive(self):
        errors, _ = validate_attachment(
            attachment(autoScalingGroupName="asg-1", targetGroupArn="tg-1", albTargetGroupArn="tg-1"), {}, "CREATE"
        )
        self.assertEqual(len(errors), 1)
        self.assertIn("targetGroupArn, albTargetGroupArn", errors[0])

        errors, _ = validate_attachment(attachment(autoScalingGroupName="asg-1"), {}, "CREATE")
        self.assertIn("got: none", errors[0])

    def test_spec_is_immutable(self):
        old = attachment(autoScalingGroupName="asg-1", targetGroupArn="tg-1")
        new = attachment(autoScalingGroupName="asg-1", targetGroupArn="tg-2")
        errors, _ = validate_attachment(new, old, "UPDATE")
        self.assertEqual(errors, ["spec.targetGroupArn is immutable"])

        errors, _ = validate_attachment(old, old, "UPDATE")
        self.assertEqual(errors, [])

class TestWebhookServer(unittest.TestCase):
    def setUp(self):
        self.client = app.test_client()

    def test_health(self):
        response = self.client.get('/health')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json(), {"status": "healthy"})

    def test_allows_valid_attachment(self):
        review = admission_review(attachment(autoScalingGroupName="asg-1", targetGroupArn="tg-1"))

        response = self.client.post('/validate', json=review).get_json()

        self.assertEqual(response["kind"], "AdmissionReview")
        self.assertEqual(response["response"]["uid"], "1234")
        self.assertTrue(response["response"]["allowed"])
        self.assertNotIn("warnings", response["response"])

    def test_denies_ambiguous_attachment(self):
        review = admission_review(attachment(autoScalingGroupName="asg-1", loadBalancerName="lb-a", targetGroupArn="tg-1"))

        response = self.client.post('/validate', json=review).get_json()

        self.assertFalse(response["response"]["allowed"])
        self.assertIn("exactly one of", response["response"]["status"]["message"])

    def test_warns_about_legacy_field(self):
        review = admission_review(attachment(autoScalingGroupName="asg-1", albTargetGroupArn="tg-1"))

        response = self.client.post('/validate', json=review).get_json()

        self.assertTrue(response["response"]["allowed"])
        self.assertEqual(len(response["response"]["warnings"]), 1)
        self.assertIn("deprecated", response["response"]["warnings"][0])

    def test_denies_spec_change(self):
        old = attachment(autoScalingGroupName="asg-1", loadBalancerName="lb-a")
        new = attachment(autoScalingGroupName="asg-2", loadBalancerName="lb-a")

        response = self.client.post('/validate', json=admission_review(new, "UPDATE", old)).get_json()

        self.assertFalse(response["response"]["allowed"])
        self.assertIn("spec.autoScalingGroupName is immutable", response["response"]["status"]["message"])

    def test_allows_updates_of_terminating_objects(self):
        obj = attachment(autoScalingGroupName="asg-1")
        obj["metadata"]["deletionTimestamp"] = "2024-01-01T00:00:00Z"

        response = self.client.post('/validate', json=admission_review(obj, "UPDATE", obj)).get_json()

        self.assertTrue(response["response"]["allowed"])

    def test_empty_request(self):
        response = self.client.post('/validate', json={}).get_json()

        self.assertFalse(response["response"]["allowed"])
        self.assertEqual(response["response"]["status"]["message"], "No request body")

if __name__ == '__main__':
    unittest.main()
